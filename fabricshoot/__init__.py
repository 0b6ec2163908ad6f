"""FabricShoot - AI fashion content generation from fabric photographs."""

__version__ = "0.3.0"
