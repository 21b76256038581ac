from image_ops.errors import ImageOpsError, ToolNotFound, ProcessingFailed, StagingFailed
from image_ops.options import (
    ResizeOptions, CropOptions, ConvertOptions, CompressOptions, WatermarkOptions, ImageInfo,
)
from image_ops.processor import ImageProcessor, create_processor

__all__ = [
    "ImageOpsError", "ToolNotFound", "ProcessingFailed", "StagingFailed",
    "ResizeOptions", "CropOptions", "ConvertOptions", "CompressOptions", "WatermarkOptions",
    "ImageInfo", "ImageProcessor", "create_processor",
]
