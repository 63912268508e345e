"""
Stages of the association cascade.
"""

from .association import *
from .base_stage import *
