r"""
BoTrack
=======

This package implements a multi-object tracker that maps detections to tracks.

.. math::

    Tracker: Detections \rightarrow Tracks

Each detection is associated with a track of the previous frames using motion,
camera motion and (optionally) appearance cues.

Terminology
-----------

- **Detections**: All detected objects at the current frame.

- **Tracks**: Objects followed across frames, each having a unique track ID.

- **Association**: The process that assigns each detection to a track.

- **Lost**: The state of a track that has not been associated with a detection
    at the current frame, but may still be re-activated.

- **Unconfirmed**: A track that has been seen in a single frame only.
"""

from __future__ import annotations

__version__ = "1.0.0"

from . import assignment, consts, costs, debug, stages
from .config import *
from .detections import *
from .gmc import *
from .kalman import *
from .memory import *
from .reid import *
from .track import *
from .tracker import *
