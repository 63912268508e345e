from __future__ import annotations

from typing import Final

KEY_BOXES: Final = "boxes"
KEY_XYWH: Final = "xywh"
KEY_SCORES: Final = "scores"
KEY_CATEGORIES: Final = "categories"
KEY_EMBEDDINGS: Final = "embeddings"
KEY_MEAN: Final = "mean"
KEY_COVARIANCE: Final = "covariance"

# Detections at or below this confidence never enter association.
LOW_CONFIDENCE_FLOOR: Final = 0.1

# Tracks of the tracked and lost collections closer than this IoU cost are duplicates.
DUPLICATE_IOU_COST: Final = 0.15

# 0.95 quantile of the chi-square distribution, indexed by degrees of freedom.
CHI2INV95: Final = {
    1: 3.8415,
    2: 5.9915,
    3: 7.8147,
    4: 9.4877,
    5: 11.070,
    6: 12.592,
    7: 14.067,
    8: 15.507,
    9: 16.919,
}
