"""Support resources and the safety responses shown alongside a detection."""
from __future__ import annotations
from pydantic import BaseModel, ConfigDict


class SupportResource(BaseModel):
    """A hotline or organization offered to the member."""
    model_config = ConfigDict(frozen=True)

    name: str
    contact: str
    description: str


CRISIS_RESOURCES: tuple[SupportResource, ...] = (
    SupportResource(
        name="National Suicide Prevention Lifeline",
        contact="988",
        description="24/7 crisis support for suicidal thoughts",
    ),
    SupportResource(
        name="Crisis Text Line",
        contact="Text HOME to 741741",
        description="Text-based crisis support",
    ),
    SupportResource(
        name="National Domestic Violence Hotline",
        contact="1-800-799-7233",
        description="24/7 support for domestic violence situations",
    ),
)

GRIEF_RESOURCES: tuple[SupportResource, ...] = (
    SupportResource(
        name="GriefShare",
        contact="www.griefshare.org or 1-800-395-5755",
        description="Faith-based grief support groups and resources",
    ),
    SupportResource(
        name="The Compassionate Friends",
        contact="1-877-969-0010 or www.compassionatefriends.org",
        description="Support for families who have lost a child",
    ),
    SupportResource(
        name="National Alliance for Grieving Children",
        contact="www.childrengrieve.org",
        description="Resources for children dealing with loss",
    ),
)


def get_crisis_resources() -> list[SupportResource]:
    return list(CRISIS_RESOURCES)


def get_grief_resources() -> list[SupportResource]:
    return list(GRIEF_RESOURCES)


def _format_resources(resources: tuple[SupportResource, ...]) -> str:
    return "\n\n".join(f"• {r.name}: {r.contact}\n  {r.description}" for r in resources)


def generate_crisis_response() -> str:
    """Safety message shown to a member when a crisis is detected."""
    return (
        "I'm concerned about what you're sharing. Your safety and well-being are very important.\n\n"
        "Please reach out to these professional resources who can provide immediate help:\n\n"
        f"{_format_resources(CRISIS_RESOURCES)}\n\n"
        "If you're in immediate danger, please call 911 or go to your nearest emergency room.\n\n"
        "I'm here to provide spiritual guidance, but these trained professionals can offer "
        "the immediate support you need right now."
    )


def generate_grief_response() -> str:
    """Compassionate message shown to a member when grief is detected."""
    return (
        "I'm so sorry for your loss. Grief is a profound journey, and it's important to know "
        "you're not alone in this difficult time.\n\n"
        "Here are some faith-based resources that can provide support and community:\n\n"
        f"{_format_resources(GRIEF_RESOURCES)}\n\n"
        "God is close to the brokenhearted and saves those who are crushed in spirit "
        "(Psalm 34:18). I'm here to walk alongside you with spiritual guidance during this "
        "time of mourning."
    )
