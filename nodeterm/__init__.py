"""nodeterm: drains Nomad nodes ahead of EC2 instance interruptions."""

__version__ = "0.1.0"
