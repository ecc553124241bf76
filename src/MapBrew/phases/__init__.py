"""Map generators and the material-analysis boundary."""
