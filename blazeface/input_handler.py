"""
Input handling for the BlazeFace batch pipeline.

Responsibility:
    Turn a source path (single image or directory of images) into a
    uniform iterator of (image_id, path) tuples. Decoding is left to the
    detector so that one corrupt file only fails that image.

Non-goals:
    - No decoding, detection, or output writing.
    - No recursive directory walking.
    - No video or camera sources.
"""

import logging
from pathlib import Path
from typing import Iterator, List, Tuple, Union

logger = logging.getLogger(__name__)

# Image extensions recognized by this handler
IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".bmp", ".tiff", ".tif", ".webp"}


class InputHandler:
    """Uniform image iterator over a file or a directory.

    The source type is detected at initialization:
        - File with an image extension → single image
        - Directory path → all images in the directory (sorted by name)

    Usage:
        handler = InputHandler(source="photos/")
        for image_id, path in handler:
            ...

    The image_id is the path as a string, which callers use to correlate
    detections back to their photo.
    """

    def __init__(self, source: Union[str, Path]) -> None:
        """Initialize the input handler and validate the source.

        Raises:
            FileNotFoundError: If the source does not exist.
            ValueError: If the file is not an image or the directory
                        contains no images.
        """
        path = Path(str(source).strip())

        if path.is_file():
            if path.suffix.lower() not in IMAGE_EXTENSIONS:
                raise ValueError(
                    f"Unrecognized file extension: '{path.suffix}' for source '{path}'. "
                    f"Supported images: {sorted(IMAGE_EXTENSIONS)}."
                )
            self._mode = "image"
            self._paths: List[Path] = [path]
        elif path.is_dir():
            self._mode = "directory"
            self._paths = sorted(
                p for p in path.iterdir()
                if p.is_file() and p.suffix.lower() in IMAGE_EXTENSIONS
            )
            if not self._paths:
                raise ValueError(
                    f"No image files found in directory: '{path}'. "
                    f"Supported extensions: {sorted(IMAGE_EXTENSIONS)}."
                )
            logger.info("Found %d images in directory: %s", len(self._paths), path)
        else:
            raise FileNotFoundError(
                f"Input source not found: '{path}'. "
                f"Provide a valid image file or directory."
            )

        logger.info("InputHandler initialized: mode=%s, source=%s", self._mode, path)

    def __len__(self) -> int:
        return len(self._paths)

    def __iter__(self) -> Iterator[Tuple[str, Path]]:
        for path in self._paths:
            yield str(path), path
