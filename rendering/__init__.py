from rendering.models import RenderedPage
from rendering.policy import BLOCKED_RESOURCE_TYPES, is_resource_allowed
from rendering.engine import PageRenderer, HIDE_WEBDRIVER_SCRIPT
