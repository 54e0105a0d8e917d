"""
BlazeFace detection network.

Responsibility:
    Define the BlazeFace convolutional architecture for both profiles and
    run the forward pass: a (3, R, R) input tensor becomes per-anchor
    classification logits and regression vectors, aligned with the anchor
    table bound at load time.

Non-goals:
    - No training, loss or dropout paths.
    - No batching (batch size one only).
    - No implicit resizing of mismatched inputs.

Layer names follow the released weight files: backbone1/backbone2 for the
front model, backbone/final for the back model, and
classifier_8/classifier_16/regressor_8/regressor_16 heads for both.
"""

import logging
from typing import List

import torch
import torch.nn as nn
import torch.nn.functional as F

from blazeface.decoder import RawOutput, decode
from blazeface.detection import Detection
from blazeface.profile import ModelProfile
from blazeface.suppressor import non_max_suppression

logger = logging.getLogger(__name__)

NUM_KEYPOINTS = 6
NUM_COORDS = 4 + 2 * NUM_KEYPOINTS


# ==================== Building blocks ====================

class BlazeBlock(nn.Module):
    """Depthwise-separable residual block.

    Stride-2 blocks max-pool the skip path and pad the residual path
    asymmetrically (right/bottom) as TFLite "same" padding does. Extra
    output channels on the skip path are zero-padded.
    """

    def __init__(self, in_channels: int, out_channels: int, kernel_size: int = 3, stride: int = 1):
        super().__init__()
        self.stride = stride
        self.channel_pad = out_channels - in_channels

        if stride == 2:
            self.max_pool = nn.MaxPool2d(kernel_size=stride, stride=stride)
            padding = 0
        else:
            padding = (kernel_size - 1) // 2

        self.convs = nn.Sequential(
            nn.Conv2d(in_channels, in_channels, kernel_size, stride=stride,
                      padding=padding, groups=in_channels, bias=True),
            nn.Conv2d(in_channels, out_channels, 1, stride=1, padding=0, bias=True),
        )
        self.act = nn.ReLU(inplace=True)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        if self.stride == 2:
            h = F.pad(x, (0, 2, 0, 2), "constant", 0)
            x = self.max_pool(x)
        else:
            h = x

        if self.channel_pad > 0:
            x = F.pad(x, (0, 0, 0, 0, 0, self.channel_pad), "constant", 0)

        return self.act(self.convs(h) + x)


class FinalBlazeBlock(nn.Module):
    """Stride-2 block without a skip connection (back model only)."""

    def __init__(self, channels: int, kernel_size: int = 3):
        super().__init__()
        self.convs = nn.Sequential(
            nn.Conv2d(channels, channels, kernel_size, stride=2, padding=0,
                      groups=channels, bias=True),
            nn.Conv2d(channels, channels, 1, stride=1, padding=0, bias=True),
        )
        self.act = nn.ReLU(inplace=True)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        h = F.pad(x, (0, 2, 0, 2), "constant", 0)
        return self.act(self.convs(h))


def _stem() -> List[nn.Module]:
    return [
        nn.Conv2d(3, 24, kernel_size=5, stride=2, padding=0, bias=True),
        nn.ReLU(inplace=True),
    ]


def _repeat(channels: int, count: int) -> List[nn.Module]:
    return [BlazeBlock(channels, channels) for _ in range(count)]


# ==================== Network ====================

class BlazeFace(nn.Module):
    """BlazeFace single-shot face detector.

    Usage:
        net = BlazeFace(ModelProfile.FRONT)
        net.load_state_dict(weights)
        net.bind(anchors, scale=100.0, min_score_threshold=0.75,
                 min_suppression_threshold=0.3)
        detections = net.detect(tensor)

    Anchors are registered as a non-persistent buffer, so they follow the
    module across .to() calls but are not part of the weight file.
    After freeze() no parameter requires gradients; weights and anchors
    are never written during inference.
    """

    def __init__(self, profile: ModelProfile):
        super().__init__()
        self.profile = profile
        self.scale = 100.0
        self.min_score_threshold = 0.75
        self.min_suppression_threshold = 0.3

        if profile is ModelProfile.FRONT:
            self.backbone1 = nn.Sequential(
                *_stem(),
                BlazeBlock(24, 24),
                BlazeBlock(24, 28),
                BlazeBlock(28, 32, stride=2),
                BlazeBlock(32, 36),
                BlazeBlock(36, 42),
                BlazeBlock(42, 48, stride=2),
                BlazeBlock(48, 56),
                BlazeBlock(56, 64),
                BlazeBlock(64, 72),
                BlazeBlock(72, 80),
                BlazeBlock(80, 88),
            )
            self.backbone2 = nn.Sequential(
                BlazeBlock(88, 96, stride=2),
                *_repeat(96, 4),
            )
            channels_8, channels_16 = 88, 96
        else:
            self.backbone = nn.Sequential(
                *_stem(),
                *_repeat(24, 7),
                BlazeBlock(24, 24, stride=2),
                *_repeat(24, 7),
                BlazeBlock(24, 48, stride=2),
                *_repeat(48, 7),
                BlazeBlock(48, 96, stride=2),
                *_repeat(96, 7),
            )
            self.final = FinalBlazeBlock(96)
            channels_8, channels_16 = 96, 96

        self.classifier_8 = nn.Conv2d(channels_8, 2, 1, bias=True)
        self.classifier_16 = nn.Conv2d(channels_16, 6, 1, bias=True)
        self.regressor_8 = nn.Conv2d(channels_8, 2 * NUM_COORDS, 1, bias=True)
        self.regressor_16 = nn.Conv2d(channels_16, 6 * NUM_COORDS, 1, bias=True)

        self.register_buffer(
            "anchors",
            torch.zeros(profile.anchor_count, 4),
            persistent=False,
        )

    # -- Setup ----------------------------------------------------------------

    def bind(
        self,
        anchors: torch.Tensor,
        scale: float,
        min_score_threshold: float,
        min_suppression_threshold: float,
    ) -> "BlazeFace":
        """Attach the anchor table, decode scale and thresholds.

        Raises:
            ValueError: If the anchor table is not (anchor_count, 4).
        """
        expected = (self.profile.anchor_count, 4)
        if tuple(anchors.shape) != expected:
            raise ValueError(
                f"Anchor table shape mismatch for profile {self.profile.name}: "
                f"expected {expected}, got {tuple(anchors.shape)}."
            )

        self.anchors = anchors.to(device=self.anchors.device)
        self.scale = float(scale)
        self.min_score_threshold = float(min_score_threshold)
        self.min_suppression_threshold = float(min_suppression_threshold)
        return self

    def freeze(self) -> "BlazeFace":
        """Switch to inference mode and stop tracking gradients."""
        self.eval()
        for param in self.parameters():
            param.requires_grad_(False)
        return self

    @property
    def device(self) -> torch.device:
        return self.anchors.device

    @property
    def dtype(self) -> torch.dtype:
        return self.classifier_8.weight.dtype

    # -- Inference ------------------------------------------------------------

    def _check_input(self, x: torch.Tensor) -> torch.Tensor:
        expected = self.profile.input_shape
        actual = tuple(x.shape)

        if x.dim() == 4 and actual[0] == 1:
            x = x[0]

        if tuple(x.shape) != expected:
            raise ValueError(
                f"Input shape mismatch for profile {self.profile.name}: "
                f"expected {expected} (channels, height, width), "
                f"got {actual}. Resize the image to "
                f"{self.profile.resolution}x{self.profile.resolution} first."
            )

        return x.unsqueeze(0).to(device=self.device, dtype=self.dtype)

    def forward(self, x: torch.Tensor) -> RawOutput:
        """Run the network on a single (3, R, R) or (1, 3, R, R) tensor.

        Returns:
            RawOutput with scores (num_anchors,) and regressions
            (num_anchors, 16).

        Raises:
            ValueError: If the spatial shape does not match the profile.
        """
        x = self._check_input(x)

        # TFLite "same" padding for the 5x5 stride-2 stem
        x = F.pad(x, (1, 2, 1, 2), "constant", 0)

        if self.profile is ModelProfile.FRONT:
            x = self.backbone1(x)           # (1, 88, 16, 16)
            h = self.backbone2(x)           # (1, 96, 8, 8)
        else:
            x = self.backbone(x)            # (1, 96, 16, 16)
            h = self.final(x)               # (1, 96, 8, 8)

        c1 = self._flatten(self.classifier_8(x), 1)
        c2 = self._flatten(self.classifier_16(h), 1)
        r1 = self._flatten(self.regressor_8(x), NUM_COORDS)
        r2 = self._flatten(self.regressor_16(h), NUM_COORDS)

        scores = torch.cat((c1, c2), dim=0).squeeze(-1)
        regressions = torch.cat((r1, r2), dim=0)
        return RawOutput(scores=scores, regressions=regressions)

    @staticmethod
    def _flatten(head: torch.Tensor, width: int) -> torch.Tensor:
        # (1, A * width, H, W) -> (H * W * A, width), anchor order y, x, a
        return head.permute(0, 2, 3, 1).reshape(-1, width)

    def detect(self, x: torch.Tensor) -> List[Detection]:
        """Forward pass, anchor decoding and NMS for one input tensor."""
        with torch.inference_mode():
            raw = self(x)
        return self.postprocess(raw)

    def postprocess(self, raw: RawOutput) -> List[Detection]:
        """Decode and suppress raw output with the thresholds bound at load."""
        candidates = decode(raw, self.anchors, self.scale, self.min_score_threshold)
        detections = non_max_suppression(candidates, self.min_suppression_threshold)
        logger.debug(
            "Decoded %d candidates, %d after suppression.",
            len(candidates), len(detections),
        )
        return detections
