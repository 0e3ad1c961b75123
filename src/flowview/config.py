"""
Global Configuration and Safe Defaults.

This module centralizes the tuning constants of the viewport engine.
The constants protect the camera from degenerate transforms and keep
draw cost bounded on large query graphs.

The pydantic settings models group the constants per component so a host
can override a subset without touching module state.
"""

from pydantic import BaseModel, ConfigDict, Field, model_validator

# --- Camera Limits ---
# Scale is always clamped into this range
MIN_SCALE = 0.05
MAX_SCALE = 3.0

# Fit-to-view never zooms in past this, even for tiny graphs
FIT_MAX_SCALE = 1.5
FIT_PADDING = 80.0

# Screen area reserved for toolbars and side panels (pixels)
CHROME_LEFT = 50.0
CHROME_TOP = 50.0
CHROME_RIGHT = 270.0
CHROME_BOTTOM = 50.0

# Minimum usable area once chrome is removed
MIN_AVAILABLE_SIZE = 100.0

# --- Zoom Steps ---
ZOOM_STEP = 1.2
WHEEL_ZOOM_IN = 1.1
WHEEL_ZOOM_OUT = 0.9

# --- Zoom To Node ---
ZOOM_TO_NODE_MAX_SCALE = 2.5
ZOOM_TO_NODE_FIT_MULTIPLIER = 1.8
ZOOM_TO_NODE_FILL = 0.8
SINGLE_NODE_PADDING = 220.0

# --- Keyboard Camera Helpers ---
VISIBILITY_TOLERANCE = 50.0
ENSURE_VISIBLE_MARGIN = 100.0

# --- Default Node Geometry (graph units) ---
DEFAULT_NODE_WIDTH = 180.0
DEFAULT_NODE_HEIGHT = 60.0
DEFAULT_BOX_WIDTH = 400.0
DEFAULT_BOX_HEIGHT = 300.0

# --- Virtualization ---
# Below this node count everything is materialized
VIRTUALIZATION_THRESHOLD = 50
VIRTUALIZATION_MARGIN = 100.0

# --- Clustering ---
# Opt-in: a collapsed render set would otherwise stay under the
# virtualization threshold
CLUSTERING_ENABLED = False
CLUSTERING_THRESHOLD = 30
CLUSTER_PADDING = 40.0

# --- Scheduling (milliseconds) ---
FRAME_INTERVAL_MS = 16.0
RESIZE_DEBOUNCE_MS = 150.0
# A wheel burst is recorded once the wheel has been quiet this long
WHEEL_HISTORY_DEBOUNCE_MS = 300.0

# --- Layout History ---
HISTORY_MAX_ENTRIES = 50

# --- Nested (cloud) Viewports ---
NESTED_MIN_SCALE = 0.5
NESTED_MAX_SCALE = 2.0
CONTAINER_NODE_WIDTH = 180.0
CONTAINER_NODE_HEIGHT = 60.0
CLOUD_PADDING = 15.0
CLOUD_GAP = 30.0
CLOUD_HEADER_HEIGHT = 30.0
CLOUD_STACK_VERTICAL_GAP = 80.0

# --- Minimap ---
MINIMAP_WIDTH = 150.0
MINIMAP_HEIGHT = 100.0
MINIMAP_PADDING = 10.0
MINIMAP_MAX_SCALE = 0.15


class ChromeInsets(BaseModel):
    """Screen margins occupied by host chrome around the canvas."""

    model_config = ConfigDict(frozen=True)

    left: float = Field(default=CHROME_LEFT, ge=0)
    top: float = Field(default=CHROME_TOP, ge=0)
    right: float = Field(default=CHROME_RIGHT, ge=0)
    bottom: float = Field(default=CHROME_BOTTOM, ge=0)


class ViewportSettings(BaseModel):
    """Primary camera tuning."""

    model_config = ConfigDict(frozen=True)

    min_scale: float = Field(default=MIN_SCALE, gt=0)
    max_scale: float = Field(default=MAX_SCALE, gt=0)
    fit_max_scale: float = Field(default=FIT_MAX_SCALE, gt=0)
    fit_padding: float = Field(default=FIT_PADDING, ge=0)
    chrome: ChromeInsets = Field(default_factory=ChromeInsets)
    zoom_step: float = Field(default=ZOOM_STEP, gt=1)
    zoom_to_node_max_scale: float = Field(default=ZOOM_TO_NODE_MAX_SCALE, gt=0)
    zoom_to_node_fit_multiplier: float = Field(default=ZOOM_TO_NODE_FIT_MULTIPLIER, gt=0)
    zoom_to_node_fill: float = Field(default=ZOOM_TO_NODE_FILL, gt=0, le=1)
    single_node_padding: float = Field(default=SINGLE_NODE_PADDING, ge=0)

    @model_validator(mode="after")
    def _check_scale_range(self) -> "ViewportSettings":
        if self.min_scale > self.max_scale:
            raise ValueError(
                f"min_scale ({self.min_scale}) must not exceed max_scale ({self.max_scale})"
            )
        return self


class VirtualizationSettings(BaseModel):
    """Viewport culling tuning."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    threshold: int = Field(default=VIRTUALIZATION_THRESHOLD, ge=1)
    margin: float = Field(default=VIRTUALIZATION_MARGIN, ge=0)
    frame_interval_ms: float = Field(default=FRAME_INTERVAL_MS, gt=0)


class ClusteringSettings(BaseModel):
    """Cluster aggregation tuning."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = CLUSTERING_ENABLED
    threshold: int = Field(default=CLUSTERING_THRESHOLD, ge=1)
    default_expanded: bool = False
    padding: float = Field(default=CLUSTER_PADDING, ge=0)


class NestedViewportSettings(BaseModel):
    """Cloud panel geometry and nested camera range."""

    model_config = ConfigDict(frozen=True)

    min_scale: float = Field(default=NESTED_MIN_SCALE, gt=0)
    max_scale: float = Field(default=NESTED_MAX_SCALE, gt=0)
    node_width: float = Field(default=CONTAINER_NODE_WIDTH, gt=0)
    node_height: float = Field(default=CONTAINER_NODE_HEIGHT, gt=0)
    padding: float = Field(default=CLOUD_PADDING, ge=0)
    gap: float = Field(default=CLOUD_GAP, ge=0)
    header_height: float = Field(default=CLOUD_HEADER_HEIGHT, ge=0)
    stack_vertical_gap: float = Field(default=CLOUD_STACK_VERTICAL_GAP, ge=0)

    @model_validator(mode="after")
    def _check_scale_range(self) -> "NestedViewportSettings":
        if self.min_scale > self.max_scale:
            raise ValueError("nested min_scale must not exceed max_scale")
        return self


class HistorySettings(BaseModel):
    """Layout undo/redo tuning."""

    model_config = ConfigDict(frozen=True)

    max_entries: int = Field(default=HISTORY_MAX_ENTRIES, ge=1)


class FlowViewSettings(BaseModel):
    """Aggregate settings handed to the top-level controller."""

    model_config = ConfigDict(frozen=True)

    viewport: ViewportSettings = Field(default_factory=ViewportSettings)
    virtualization: VirtualizationSettings = Field(default_factory=VirtualizationSettings)
    clustering: ClusteringSettings = Field(default_factory=ClusteringSettings)
    nested: NestedViewportSettings = Field(default_factory=NestedViewportSettings)
    history: HistorySettings = Field(default_factory=HistorySettings)
    resize_debounce_ms: float = Field(default=RESIZE_DEBOUNCE_MS, ge=0)
    wheel_history_debounce_ms: float = Field(default=WHEEL_HISTORY_DEBOUNCE_MS, ge=0)
