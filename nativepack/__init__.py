"""Build a program for several platforms and package each build natively."""

from .build import Artifact, Builder, BuildResult
from .config import ProjectInfo, load_project
from .errors import BuildError, BundleError, InputError, MultiError, PackagingError
from .metadata import MetaData
from .packer import Packer
from .targets import DEFAULT_TARGETS, Architecture, FlagSet, Flags, Platform, Target

__version__ = "0.1.0"
