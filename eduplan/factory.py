"""
Builds controllers, clients and cameras from the application config.

Shared by the web app and the CLI so both read config.yaml the same way.
"""

import logging

from eduplan.camera import BrowserFrameSource, CameraCapture, OpenCVVideoSource
from eduplan.generation_client import get_client
from eduplan.models import Tier
from eduplan.store import PersistentStore
from eduplan.workflow import DEFAULT_PASSCODES, WorkflowController

logger = logging.getLogger(__name__)


def get_passcodes(config):
    """Return the passcode -> Tier map from ``auth.passcodes``.

    Config maps tier name to passcode, e.g. ``{"standard": "2026"}``.
    """
    configured = config.get("auth", {}).get("passcodes")
    if not configured:
        return dict(DEFAULT_PASSCODES)
    passcodes = {}
    for tier_name, code in configured.items():
        tier = Tier(tier_name)
        if tier is Tier.NONE:
            raise ValueError("auth.passcodes cannot grant the 'none' tier")
        passcodes[str(code)] = tier
    return passcodes


def build_camera(config, source=None):
    """
    Build a CameraCapture from the ``camera`` config section.

    Args:
        config: Application config dict.
        source: Override for ``camera.source`` ("browser" or "device").
    """
    camera_config = config.get("camera", {})
    source = source or camera_config.get("source", "browser")
    quality = int(camera_config.get("jpeg_quality", 85))

    if source == "browser":
        return CameraCapture(BrowserFrameSource, jpeg_quality=quality)
    if source == "device":
        # Prefer the rear-facing device when one is configured
        index = camera_config.get("rear_index")
        if index is None:
            index = camera_config.get("index", 0)
        return CameraCapture(lambda: OpenCVVideoSource(int(index)), jpeg_quality=quality)
    raise ValueError(f"Unsupported camera source: {source}")


def build_controller(config, engine, session_scope=None, on_credential_request=None, camera=None):
    """Wire a WorkflowController with its client, store and camera."""
    return WorkflowController(
        client=get_client(config),
        store=PersistentStore(engine, session_scope),
        camera=camera if camera is not None else build_camera(config),
        passcodes=get_passcodes(config),
        on_credential_request=on_credential_request,
    )
