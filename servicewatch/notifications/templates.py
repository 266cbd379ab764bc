"""Alert message templates."""

from __future__ import annotations

from jinja2 import DictLoader, Environment, StrictUndefined

SERVICE_DOWN = "SERVICE_DOWN"
SERVICE_RECOVERED = "SERVICE_RECOVERED"
SSL_EXPIRING = "SSL_EXPIRING"

EVENT_TYPES = (SERVICE_DOWN, SERVICE_RECOVERED, SSL_EXPIRING)

TEMPLATES = {
    SERVICE_DOWN: (
        "{{ service_name }} is DOWN ❌\n"
        "URL: {{ service_url }}\n"
        "Since: {{ down_time }}\n"
        "Error: {{ error_message | default('Unknown') }}\n"
        "HTTP: {{ http_code | default('N/A') }}"
        "{% if incident_id is defined and incident_id %}\nIncident: #{{ incident_id }}{% endif %}"
    ),
    SERVICE_RECOVERED: (
        "{{ service_name }} is back UP ✅\n"
        "URL: {{ service_url }}\n"
        "Recovered: {{ recovered_time }}"
        "{% if response_time_ms is defined and response_time_ms %}\nResponse time: {{ response_time_ms }}ms{% endif %}"
        "{% if incident_id is defined and incident_id %}\nIncident: #{{ incident_id }} resolved{% endif %}"
    ),
    SSL_EXPIRING: (
        "TLS certificate for {{ service_name }} expires soon ⚠️\n"
        "Host: {{ domain }}\n"
        "Days remaining: {{ days_remaining }} (threshold {{ threshold_days }})\n"
        "Expires: {{ expiry_date }}"
    ),
}

_env = Environment(
    loader=DictLoader(TEMPLATES),
    undefined=StrictUndefined,
    autoescape=False,
)


def render_message(event_type: str, variables: dict[str, str]) -> str:
    """Render the alert text for ``event_type``.

    Unknown event types fall back to a ``key: value`` listing.
    """
    if event_type not in TEMPLATES:
        lines = [event_type]
        lines.extend(f"{k}: {v}" for k, v in sorted(variables.items()))
        return "\n".join(lines)
    return _env.get_template(event_type).render(**variables).strip()
