"""Text region geometry.

Coordinates use a top-left origin: x grows to the right, y grows down.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator

from card_scanner.errors import ValidationFailure

HIGH_CONFIDENCE_THRESHOLD = 0.8


class BoundingBox(BaseModel):
    """Axis-aligned rectangle of a detected text region."""

    model_config = ConfigDict(frozen=True)

    left: float
    top: float
    width: float
    height: float

    @classmethod
    def from_corners(
        cls, left: float, top: float, right: float, bottom: float
    ) -> "BoundingBox":
        return cls(left=left, top=top, width=right - left, height=bottom - top)

    @classmethod
    def from_center(
        cls, center_x: float, center_y: float, width: float, height: float
    ) -> "BoundingBox":
        return cls(
            left=center_x - width / 2,
            top=center_y - height / 2,
            width=width,
            height=height,
        )

    @classmethod
    def from_normalized(
        cls,
        x: float,
        y: float,
        width: float,
        height: float,
        image_width: float,
        image_height: float,
        flip_y: bool = False,
    ) -> "BoundingBox":
        """
        Convert a rectangle in [0, 1] image units to pixel coordinates.

        Args:
            x, y, width, height: Normalized rectangle.
            image_width, image_height: Image size in pixels.
            flip_y: Set when ``y`` is measured from the bottom edge
                (bottom-left origin), as some platform recognizers report.
        """
        top = 1.0 - y - height if flip_y else y
        return cls(
            left=x * image_width,
            top=top * image_height,
            width=width * image_width,
            height=height * image_height,
        )

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height

    @property
    def center_x(self) -> float:
        return self.left + self.width / 2

    @property
    def center_y(self) -> float:
        return self.top + self.height / 2

    @property
    def area(self) -> float:
        return self.width * self.height

    @property
    def is_valid(self) -> bool:
        return self.width > 0 and self.height > 0

    def contains_point(self, x: float, y: float) -> bool:
        """Edges count as inside."""
        return self.left <= x <= self.right and self.top <= y <= self.bottom

    def intersects(self, other: "BoundingBox") -> bool:
        """Boxes that only touch along an edge do not intersect."""
        return (
            self.left < other.right
            and self.right > other.left
            and self.top < other.bottom
            and self.bottom > other.top
        )

    def get_intersection_area(self, other: "BoundingBox") -> float:
        if not self.intersects(other):
            return 0.0
        width = min(self.right, other.right) - max(self.left, other.left)
        height = min(self.bottom, other.bottom) - max(self.top, other.top)
        return width * height

    def expand(self, margin: float) -> "BoundingBox":
        """Grow the box by ``margin`` on every side."""
        return BoundingBox(
            left=self.left - margin,
            top=self.top - margin,
            width=self.width + 2 * margin,
            height=self.height + 2 * margin,
        )

    def scale(self, factor: float) -> "BoundingBox":
        """Resize around the center point."""
        return BoundingBox.from_center(
            self.center_x, self.center_y, self.width * factor, self.height * factor
        )

    def clamp(
        self,
        max_x: float,
        max_y: float,
        min_x: float = 0.0,
        min_y: float = 0.0,
    ) -> "BoundingBox":
        """Fit the box inside the rectangle (min_x, min_y)-(max_x, max_y)."""
        left = _clamp(self.left, min_x, max(min_x, max_x - self.width))
        top = _clamp(self.top, min_y, max(min_y, max_y - self.height))
        return BoundingBox(
            left=left,
            top=top,
            width=_clamp(self.width, 0.0, max_x - left),
            height=_clamp(self.height, 0.0, max_y - top),
        )

    def __str__(self) -> str:
        return (
            f"BoundingBox(left={self.left:.1f}, top={self.top:.1f}, "
            f"width={self.width:.1f}, height={self.height:.1f})"
        )


def _clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(value, upper))


class DetectedText(BaseModel):
    """A single recognized text block."""

    model_config = ConfigDict(frozen=True)

    text: str
    confidence: float
    bounding_box: BoundingBox = Field(
        default_factory=lambda: BoundingBox(left=0, top=0, width=0, height=0)
    )
    language_code: str | None = None

    @field_validator("confidence")
    @classmethod
    def _check_confidence(cls, value: float) -> float:
        if not 0.0 <= value <= 1.0:
            raise ValidationFailure(
                f"Confidence must be between 0.0 and 1.0, got: {value}",
                field="confidence",
            )
        return value

    def is_high_confidence(self) -> bool:
        return self.confidence >= HIGH_CONFIDENCE_THRESHOLD

    def is_empty_or_meaningless(self) -> bool:
        return len(self.text.strip()) < 2

    @property
    def text_length(self) -> int:
        return len(self.text)

    @property
    def cleaned_text(self) -> str:
        return " ".join(self.text.split())
