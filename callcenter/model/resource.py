"""Outbound resources and SIP gateways used to dial out."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any, Optional

from callcenter.model.call import (
    CALL_ORIGINATION_UUID,
    CALL_RECORD_FILE_TEMPLATE,
    CALL_VARIABLE_DOMAIN_ID,
    CALL_VARIABLE_GATEWAY_ID,
    CALL_VARIABLE_GRANTEE,
)
from callcenter.model.utils import AppError

OUTBOUND_RESOURCE_STRATEGY_RANDOM = "random"
OUTBOUND_RESOURCE_STRATEGY_TOP_DOWN = "top_down"
OUTBOUND_RESOURCE_STRATEGY_BY_LIMIT = "by_limit"

SIP_ENDPOINT_TEMPLATE = "sofia/sip/{}@{}"

_HTML_ESCAPES = (
    ("<", "\\u003c"),
    (">", "\\u003e"),
    ("&", "\\u0026"),
    ("\u2028", "\\u2028"),
    ("\u2029", "\\u2029"),
)


def _bool_text(value: bool) -> str:
    return "true" if value else "false"


@dataclass
class OutboundResourceParameters:
    sip_cid_type: str = ""
    ignore_early_media: str = ""


@dataclass
class OutboundResource:
    id: int = 0
    name: str = ""
    enabled: bool = False
    limit: int = 0
    rps: int = 0
    reserve: bool = False
    updated_at: int = 0
    variables: Optional[dict[str, Any]] = None
    display_numbers: Optional[list[str]] = None
    successively_errors: int = 0
    max_successively_errors: int = 0
    error_ids: Optional[list[str]] = None
    gateway_id: int = 0
    parameters: OutboundResourceParameters = field(default_factory=OutboundResourceParameters)

    def is_valid(self) -> None:
        """Raise AppError when the resource name is too short."""
        if len(self.name.encode("utf-8")) <= 3:
            raise AppError(
                "OutboundResource.IsValid",
                "model.outbound_resource.is_valid.name.app_error",
                None,
                "name=" + self.name,
                HTTPStatus.BAD_REQUEST,
            )

    def to_json(self) -> str:
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "enabled": self.enabled,
            "limit": self.limit,
            "rps": self.rps,
            "reserve": self.reserve,
        }
        if self.updated_at:
            data["updated_at"] = self.updated_at
        if self.variables:
            data["variables"] = self.variables
        data.update(
            {
                "display_numbers": self.display_numbers,
                "successively_errors": self.successively_errors,
                "max_successively_errors": self.max_successively_errors,
                "error_ids": self.error_ids,
                "gateway_id": self.gateway_id,
                "parameters": {
                    "cid_type": self.parameters.sip_cid_type,
                    "ignore_early_media": self.parameters.ignore_early_media,
                },
            }
        )
        text = json.dumps(data, ensure_ascii=False, separators=(",", ":"))
        for char, escaped in _HTML_ESCAPES:
            text = text.replace(char, escaped)
        return text


@dataclass
class BridgeRequest:
    id: Optional[str] = None
    grantee_id: Optional[int] = None
    parent_id: str = ""
    name: str = ""
    destination: str = ""
    display: str = ""
    timeout: int = 0
    recordings: bool = False
    record_mono: bool = False
    record_all: bool = False


@dataclass
class SipGateway:
    id: int = 0
    name: str = ""
    updated_at: int = 0
    register: bool = False
    proxy: str = ""
    host_name: Optional[str] = None
    username: Optional[str] = None
    account: Optional[str] = None
    password: Optional[str] = None
    domain_id: int = 0
    use_bridge_answer_timeout: bool = False
    sip_cid_type: str = ""
    ignore_early_media: str = ""

    def variables(self) -> dict[str, str]:
        """Channel variables needed to dial through this gateway."""
        result = {"sip_h_X-Webitel-Direction": "outbound"}
        if (
            self.register
            and self.username is not None
            and self.password is not None
            and self.account is not None
        ):
            result["sip_auth_username"] = self.username
            result["sip_auth_password"] = self.password
            result["sip_from_uri"] = self.account
        elif self.host_name is not None:
            result["sip_invite_domain"] = self.host_name

        if self.sip_cid_type:
            result["sip_cid_type"] = self.sip_cid_type
        if self.ignore_early_media:
            result["ignore_early_media"] = self.ignore_early_media
        return result

    def endpoint(self, destination) -> str:
        return SIP_ENDPOINT_TEMPLATE.format(destination.replace(" ", ""), self.proxy)

    def bridge(self, params) -> str:
        """A bridge dial string with the leg variables in brackets before the endpoint."""
        parts = [
            f"leg_progress_timeout={params.timeout}",
            f"bridge_answer_timeout={params.timeout}",
            f"wbt_parent_id={params.parent_id}",
            f"origination_caller_id_number={params.display}",
            f"wbt_from_number={params.display}",
            f"wbt_from_name={params.display}",
            "wbt_to_type=dest",
            "ignore_display_updates=true",
            f"wbt_to_number='{params.destination}'",
            f"wbt_to_name='{params.name}'",
            f"effective_callee_id_name='{params.name}'",
            f"{CALL_VARIABLE_DOMAIN_ID}={self.domain_id}",
            f"{CALL_VARIABLE_GATEWAY_ID}={self.id}",
            "sip_route_uri=sip:$${outbound_sip_proxy}",
            "sip_copy_custom_headers=false",
        ]

        if params.id is not None:
            parts.append(f"{CALL_ORIGINATION_UUID}={params.id}")
        if params.grantee_id is not None:
            parts.append(f"{CALL_VARIABLE_GRANTEE}={params.grantee_id}")
        if self.use_bridge_answer_timeout:
            parts.append(f"bridge_answer_timeout={params.timeout}")
        if params.recordings:
            parts.append(
                "hangup_after_bridge=true,recording_follow_transfer=true,"
                f"RECORD_BRIDGE_REQ={_bool_text(params.record_all)},"
                f"media_bug_answer_req={_bool_text(params.record_all)},"
                f"RECORD_STEREO={_bool_text(not params.record_mono)},"
                "execute_on_answer=record_session http_cache://http://$${cdr_url}/sys/recordings"
                f"?domain={self.domain_id}&id={params.parent_id}"
                f"&name={params.parent_id}_{CALL_RECORD_FILE_TEMPLATE}&.mp3"
            )

        parts.extend(f"{key}='{value}'" for key, value in self.variables().items())
        return f"[{','.join(parts)}]{self.endpoint(params.destination)}"


@dataclass
class OutboundResourceGroup:
    name: str = ""


@dataclass
class OutboundResourceErrorResult:
    count_successively_error: Optional[int] = None
    stopped: Optional[bool] = None
    un_reserve_resource_id: Optional[int] = None