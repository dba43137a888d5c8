# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

# Cloud functions for the serve tracker - serve attempt email notifications.
#
# This file containing Python cloud functions must be named main.py.
# See https://cloud.google.com/run/docs/write-functions#python for more info.

# Standard library imports
import html
from dataclasses import asdict, dataclass, field
from typing import Optional

# Third-party library imports
import resend
from dacite import from_dict, Config
from firebase_admin import initialize_app
from firebase_functions import https_fn, logger, options

# Local application imports
from serve_tracker.config import get_settings

MAX_RECIPIENTS = 50
MAX_SUBJECT_LENGTH = 500
IMAGE_ATTACHMENT_NAME = "serve-attempt.jpg"

initialize_app()


@dataclass
class SendEmailRequest:
    to: list[str] = field(default_factory=list)
    subject: str = ""
    body: str = ""
    image_data: Optional[str] = None
    coordinates: Optional[dict] = None


@dataclass
class SendEmailResult:
    success: bool
    message: str
    id: Optional[str] = None


def _parse_request(data: dict) -> SendEmailRequest:
    to = data.get("to")
    if isinstance(to, str):
        to = [to]
    return from_dict(
        data_class=SendEmailRequest,
        data={
            "to": [t for t in (to or []) if t],
            "subject": data.get("subject") or "",
            "body": data.get("body") or "",
            "image_data": data.get("imageData"),
            "coordinates": data.get("coordinates"),
        },
        config=Config(check_types=False),
    )


def _map_link(coordinates: Optional[dict]) -> Optional[str]:
    if not coordinates:
        return None
    lat, lng = coordinates.get("latitude"), coordinates.get("longitude")
    if lat is None or lng is None:
        return None
    return f"https://www.google.com/maps?q={lat},{lng}"


def _image_attachment(image_data: Optional[str]) -> Optional[dict]:
    """Strips a data-URL prefix; Resend accepts base64 content as-is."""
    if not image_data:
        return None
    content = image_data.split(",", 1)[1] if image_data.startswith("data:") else image_data
    return {"filename": IMAGE_ATTACHMENT_NAME, "content": content}


def build_email_params(request: SendEmailRequest, from_email: str) -> dict:
    text = request.body
    html_body = f"<p>{html.escape(request.body).replace(chr(10), '<br>')}</p>"
    link = _map_link(request.coordinates)
    if link:
        text += f"\n\nLocation: {link}"
        html_body += f'<p>Location: <a href="{link}">View on map</a></p>'

    params = {
        "from": from_email,
        "to": request.to,
        "subject": request.subject,
        "html": html_body,
        "text": text,
    }
    attachment = _image_attachment(request.image_data)
    if attachment:
        params["attachments"] = [attachment]
    return params


@https_fn.on_call(memory=options.MemoryOption.MB_256)
def send_email(req: https_fn.CallableRequest) -> dict:
    """
    Sends a serve attempt notification email through Resend.

    Args:
        req (https_fn.CallableRequest): The request, containing ``to``,
            ``subject``, ``body`` and optional ``imageData`` / ``coordinates``.

    Returns:
        A dictionary representation of the SendEmailResult object.
    """
    request = _parse_request(req.data or {})

    if not request.to:
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.INVALID_ARGUMENT,
            "Must specify at least one recipient.",
        )
    if len(request.to) > MAX_RECIPIENTS:
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.INVALID_ARGUMENT,
            "Too many recipients.",
        )
    if not request.subject or len(request.subject) > MAX_SUBJECT_LENGTH:
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.INVALID_ARGUMENT,
            "Subject must be non-empty and under the maximum length.",
        )
    if not request.body:
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.INVALID_ARGUMENT,
            "Body must not be empty.",
        )

    settings = get_settings()
    if not settings.resend_api_key:
        logger.error("RESEND_API_KEY is not configured")
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.FAILED_PRECONDITION,
            "Email sending is not configured.",
        )
    resend.api_key = settings.resend_api_key

    try:
        response = resend.Emails.send(build_email_params(request, settings.from_email))
    except Exception as e:
        logger.error(f"Error sending email: {e}")
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.INTERNAL, f"Failed to send email: {e}"
        )

    email_id = response.get("id") if isinstance(response, dict) else getattr(response, "id", None)
    logger.info(f"Email sent to {len(request.to)} recipient(s), id={email_id}")
    result = SendEmailResult(success=True, message="Email sent successfully", id=email_id)
    return asdict(result)
