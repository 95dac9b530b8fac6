"""Locate a business card inside a photo and flatten it."""

import logging

import cv2
import numpy as np

from card_scanner.errors import UnsupportedFormatFailure

logger = logging.getLogger(__name__)

# Working size for contour search
DETECTION_MAX_DIM = 1500
# Largest image handed to a recognizer
RECOGNITION_MAX_DIM = 2000
MIN_CARD_WIDTH = 100
MIN_CARD_HEIGHT = 60


def decode_image(image_data: bytes) -> np.ndarray:
    """
    Decode encoded image bytes into a BGR array.

    Raises:
        UnsupportedFormatFailure: If OpenCV cannot decode the bytes.
    """
    if not image_data:
        raise UnsupportedFormatFailure("Empty image data", component="preprocessing")
    buffer = np.frombuffer(image_data, dtype=np.uint8)
    img = cv2.imdecode(buffer, cv2.IMREAD_COLOR)
    if img is None:
        raise UnsupportedFormatFailure(
            f"Cannot decode image ({len(image_data)} bytes)", component="preprocessing"
        )
    return img


def encode_png(img: np.ndarray) -> bytes:
    ok, encoded = cv2.imencode(".png", img)
    if not ok:
        raise UnsupportedFormatFailure("PNG encoding failed", component="preprocessing")
    return encoded.tobytes()


def fit_within(img: np.ndarray, max_dim: int) -> tuple[np.ndarray, float]:
    """Shrink ``img`` so its longer side is at most ``max_dim``; returns the scale used."""
    height, width = img.shape[:2]
    longest = max(height, width)
    if longest <= max_dim:
        return img, 1.0
    scale = max_dim / longest
    size = (int(width * scale), int(height * scale))
    return cv2.resize(img, size, interpolation=cv2.INTER_AREA), scale


def order_corners(pts: np.ndarray) -> np.ndarray:
    """Order four points as top-left, top-right, bottom-right, bottom-left."""
    sums = pts.sum(axis=1)
    diffs = np.diff(pts, axis=1).ravel()
    return np.array(
        [
            pts[np.argmin(sums)],
            pts[np.argmin(diffs)],
            pts[np.argmax(sums)],
            pts[np.argmax(diffs)],
        ],
        dtype=np.float32,
    )


class CardDetector:
    """Find the card outline and warp it to a flat rectangle.

    Several edge maps are tried in turn (bright region, adaptive threshold,
    Canny, morphological gradient); the largest convex quadrilateral within
    the configured area bounds wins.
    """

    def __init__(
        self,
        min_area_ratio: float = 0.05,
        max_area_ratio: float = 0.85,
        canny_low: int = 50,
        canny_high: int = 150,
        epsilon_factor: float = 0.02,
    ):
        """
        Args:
            min_area_ratio: Smallest card area relative to the image.
            max_area_ratio: Largest card area relative to the image.
            canny_low: Lower Canny threshold.
            canny_high: Upper Canny threshold.
            epsilon_factor: Polygon approximation tolerance, relative to perimeter.
        """
        self._min_area_ratio = min_area_ratio
        self._max_area_ratio = max_area_ratio
        self._canny_low = canny_low
        self._canny_high = canny_high
        self._epsilon_factor = epsilon_factor

    def detect(self, image_data: bytes, fallback_resize: bool = False) -> np.ndarray | None:
        """Decode ``image_data`` and run ``detect_from_array`` on it."""
        return self.detect_from_array(decode_image(image_data), fallback_resize)

    def detect_from_array(
        self, img: np.ndarray, fallback_resize: bool = False
    ) -> np.ndarray | None:
        """
        Crop the card out of a BGR image.

        Args:
            img: BGR image.
            fallback_resize: Return the image shrunk to recognition size
                when no card is found and it is too large.

        Returns:
            The flattened card, the shrunk fallback, or None.
        """
        if img is None or img.size == 0:
            return None

        work, scale = fit_within(img, DETECTION_MAX_DIM)
        for edge_map in (
            self._bright_region_edges,
            self._adaptive_edges,
            self._canny_edges,
            self._gradient_edges,
        ):
            contours, _ = cv2.findContours(
                edge_map(work), cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE
            )
            quad = self._largest_quad(contours, work.shape[0] * work.shape[1])
            if quad is None:
                continue
            logger.debug("Card outline found with %s", edge_map.__name__)
            corners = quad.reshape(4, 2).astype(np.float32) / scale
            card, _ = fit_within(self._flatten(img, corners), RECOGNITION_MAX_DIM)
            return card

        logger.debug("No card outline found")
        height, width = img.shape[:2]
        if fallback_resize and max(height, width) > RECOGNITION_MAX_DIM:
            shrunk, _ = fit_within(img, RECOGNITION_MAX_DIM)
            return shrunk
        return None

    def _largest_quad(self, contours, image_area: int) -> np.ndarray | None:
        low = image_area * self._min_area_ratio
        high = image_area * self._max_area_ratio
        best, best_area = None, 0.0
        for contour in contours:
            area = cv2.contourArea(contour)
            if not low <= area <= high or area <= best_area:
                continue
            approx = cv2.approxPolyDP(
                contour, self._epsilon_factor * cv2.arcLength(contour, True), True
            )
            if len(approx) == 4 and cv2.isContourConvex(approx):
                best, best_area = approx, area
        return best

    def _flatten(self, img: np.ndarray, corners: np.ndarray) -> np.ndarray:
        tl, tr, br, bl = order_corners(corners)
        width = max(int(max(np.linalg.norm(tl - tr), np.linalg.norm(br - bl))), MIN_CARD_WIDTH)
        height = max(int(max(np.linalg.norm(tl - bl), np.linalg.norm(tr - br))), MIN_CARD_HEIGHT)
        target = np.array(
            [[0, 0], [width - 1, 0], [width - 1, height - 1], [0, height - 1]],
            dtype=np.float32,
        )
        matrix = cv2.getPerspectiveTransform(np.array([tl, tr, br, bl]), target)
        return cv2.warpPerspective(img, matrix, (width, height))

    def _canny_edges(self, img: np.ndarray) -> np.ndarray:
        gray = cv2.GaussianBlur(cv2.cvtColor(img, cv2.COLOR_BGR2GRAY), (5, 5), 0)
        edges = cv2.Canny(gray, self._canny_low, self._canny_high)
        return cv2.dilate(edges, np.ones((3, 3), np.uint8), iterations=2)

    def _adaptive_edges(self, img: np.ndarray) -> np.ndarray:
        """Handles uneven lighting."""
        gray = cv2.GaussianBlur(cv2.cvtColor(img, cv2.COLOR_BGR2GRAY), (5, 5), 0)
        binary = cv2.adaptiveThreshold(
            gray, 255, cv2.ADAPTIVE_THRESH_GAUSSIAN_C, cv2.THRESH_BINARY, 11, 2
        )
        kernel = np.ones((5, 5), np.uint8)
        edges = cv2.dilate(cv2.Canny(binary, 50, 150), kernel, iterations=2)
        return cv2.erode(edges, kernel, iterations=1)

    def _gradient_edges(self, img: np.ndarray) -> np.ndarray:
        gray = cv2.GaussianBlur(cv2.cvtColor(img, cv2.COLOR_BGR2GRAY), (7, 7), 0)
        gradient = cv2.morphologyEx(
            gray, cv2.MORPH_GRADIENT, cv2.getStructuringElement(cv2.MORPH_RECT, (5, 5))
        )
        _, binary = cv2.threshold(gradient, 30, 255, cv2.THRESH_BINARY)
        kernel = np.ones((5, 5), np.uint8)
        closed = cv2.morphologyEx(binary, cv2.MORPH_CLOSE, kernel, iterations=2)
        return cv2.dilate(closed, kernel, iterations=1)

    def _bright_region_edges(self, img: np.ndarray) -> np.ndarray:
        """Light cards on darker backgrounds."""
        lightness = cv2.cvtColor(img, cv2.COLOR_BGR2LAB)[:, :, 0]
        _, mask = cv2.threshold(lightness, 180, 255, cv2.THRESH_BINARY)
        kernel = np.ones((7, 7), np.uint8)
        mask = cv2.morphologyEx(mask, cv2.MORPH_CLOSE, kernel, iterations=3)
        mask = cv2.morphologyEx(mask, cv2.MORPH_OPEN, kernel, iterations=2)
        return cv2.dilate(cv2.Canny(mask, 50, 150), kernel, iterations=2)
