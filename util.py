# app/util.py
import logging

logger = logging.getLogger(__name__)

IMAGE_CATEGORIES = {0: "default"}


def horse_image_path(img_category: int, img_number: int) -> str:
    """
    Asset path for a horse image, e.g. (0, 7) -> horses/default/horse-007.png.
    """
    category = IMAGE_CATEGORIES.get(img_category)
    if category is None:
        logger.error("Unknown image category: %s", img_category)
        category = "unknown"
    return f"horses/{category}/horse-{int(img_number):03d}.png"
