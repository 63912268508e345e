"""
This module defines cost functions that yield an assignment cost matrix between
tracks and detections.
"""

from .appearance import *
from .base_cost import *
from .fuse import *
from .iou import *
from .motion import *
from .score import *
