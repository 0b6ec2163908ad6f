# Database models package
from fabricshoot.models.assets import FabricImage, BackgroundImage
from fabricshoot.models.content import GeneratedContent
from fabricshoot.models.multi_fabric import MultiFabricJob, MultiFabricResult
from fabricshoot.models.reel import Reel

__all__ = [
    "FabricImage",
    "BackgroundImage",
    "GeneratedContent",
    "MultiFabricJob",
    "MultiFabricResult",
    "Reel",
]
