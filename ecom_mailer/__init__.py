"""ecom-mailer — startup connectivity prober with a liveness heartbeat."""

__version__ = "0.1.0"
