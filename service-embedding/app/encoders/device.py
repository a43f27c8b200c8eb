"""Device detection for the embedding model."""

from typing import Any, Dict

import torch
import structlog

logger = structlog.get_logger("embedding_service.device")


def detect_devices() -> Dict[str, Any]:
    """Probe the torch backends and recommend a device."""
    info: Dict[str, Any] = {
        "cuda_available": False,
        "mps_available": False,
        "gpu_count": 0,
        "recommended_device": "cpu",
    }

    try:
        if torch.cuda.is_available():
            info["cuda_available"] = True
            info["gpu_count"] = torch.cuda.device_count()
            info["recommended_device"] = "cuda:0"
        elif hasattr(torch.backends, "mps") and torch.backends.mps.is_available():
            info["mps_available"] = True
            info["gpu_count"] = 1
            info["recommended_device"] = "mps"
    except (RuntimeError, AssertionError) as e:
        logger.error("GPU detection failed", error=str(e))
        info["recommended_device"] = "cpu"

    logger.info(
        "Device detection completed",
        cuda_available=info["cuda_available"],
        mps_available=info["mps_available"],
        gpu_count=info["gpu_count"],
        recommended_device=info["recommended_device"],
    )
    return info


def select_device(preference: str = "auto") -> str:
    """Select a torch device string for ``preference`` (auto, cpu or gpu)."""
    preference = preference.lower()
    if preference == "cpu":
        device = "cpu"
    else:
        info = detect_devices()
        device = info["recommended_device"]
        if preference == "gpu" and device == "cpu":
            logger.warning("GPU requested but not available, falling back to CPU")

    logger.info("Device selected", device=device, preference=preference)
    return device
