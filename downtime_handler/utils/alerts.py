"""On-call alert sent once whenever traffic is redirected to this handler."""

from pydantic import BaseModel

from downtime_handler.config import Settings

DASHBOARD_BUTTON_LABEL = "Visit the dashboard →"


class OnCallAlert(BaseModel):
    recipient: int
    dashboard_url: str
    text: str
    button_label: str = DASHBOARD_BUTTON_LABEL


def build_oncall_alert(settings: Settings) -> OnCallAlert:
    dashboard_url = settings.DASHBOARD_BASE_URL + settings.PROJECT_ID
    text = (
        "<b>This is a service disruption alert, see hosting dashboard for details!</b>"
        "\n\n"
        "Traffic has been redirected to a temporary downtime handler."
        "\n\n"
        f"You ({settings.ONCALL_ADMIN}) have been set as the on-call admin for service disruptions."
    )
    return OnCallAlert(
        recipient=settings.ONCALL_ADMIN,
        dashboard_url=dashboard_url,
        text=text,
    )
