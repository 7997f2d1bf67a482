"""HTTP client for the webcash server API."""

from __future__ import annotations

import enum
import json
from dataclasses import dataclass, field
from typing import Any, Iterable

import requests

HEALTH_CHECK = "/api/v1/health_check"
"""Health check endpoint: query the spend status of outputs."""
REPLACE = "/api/v1/replace"
"""Replace endpoint: atomic webcash replacement."""
TARGET = "/api/v1/target"
"""Target endpoint: current mining difficulty and parameters."""
MINING_REPORT = "/api/v1/mining_report"
"""Mining report endpoint: submit a proof-of-work solution."""

_PRODUCTION_URL = "https://webcash.org"
_TESTNET_URL = "https://weby.cash/api/webcash/testnet"
_U32_MAX = 2**32 - 1


class ServerError(Exception):
    """Raised when a server request fails or returns an unusable reply."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NetworkKind(enum.Enum):
    """Which server a wallet talks to."""

    PRODUCTION = "production"
    TESTNET = "testnet"
    CUSTOM = "custom"


@dataclass(frozen=True)
class NetworkMode:
    """Network selection; a custom network carries its own base URL."""

    kind: NetworkKind = NetworkKind.PRODUCTION
    url: str = ""

    @classmethod
    def production(cls) -> "NetworkMode":
        """The production webcash server."""
        return cls(NetworkKind.PRODUCTION)

    @classmethod
    def testnet(cls) -> "NetworkMode":
        """The webycash testnet."""
        return cls(NetworkKind.TESTNET)

    @classmethod
    def custom(cls, url: str) -> "NetworkMode":
        """A server at a custom base URL."""
        return cls(NetworkKind.CUSTOM, url)

    def base_url(self) -> str:
        """Base URL of the selected network."""
        if self.kind is NetworkKind.PRODUCTION:
            return _PRODUCTION_URL
        if self.kind is NetworkKind.TESTNET:
            return _TESTNET_URL
        return self.url

    def endpoint_url(self, endpoint: str) -> str:
        """Full URL of ``endpoint`` on this network."""
        return f"{self.base_url()}{endpoint}"


@dataclass
class ServerConfig:
    """Server client configuration."""

    network: NetworkMode = field(default_factory=NetworkMode.production)
    timeout_seconds: int = 30

    def base_url(self) -> str:
        """Base URL derived from the network mode."""
        return self.network.base_url()


# ── response parsing helpers ─────────────────────────────────────


def _object(data: Any, what: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise ServerError(f"invalid {what}: expected a JSON object")
    return data


def _required(data: dict[str, Any], key: str, what: str) -> Any:
    if key not in data:
        raise ServerError(f"invalid {what}: missing field '{key}'")
    return data[key]


def _string(value: Any, key: str) -> str:
    if not isinstance(value, str):
        raise ServerError(f"invalid field '{key}': expected a string")
    return value


def _optional_string(value: Any, key: str) -> str | None:
    return None if value is None else _string(value, key)


def _optional_bool(value: Any, key: str) -> bool | None:
    if value is not None and not isinstance(value, bool):
        raise ServerError(f"invalid field '{key}': expected a boolean")
    return value


def _u32(value: Any, key: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= _U32_MAX:
        raise ServerError(f"invalid field '{key}': expected an unsigned 32-bit integer")
    return value


def _number(value: Any, key: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ServerError(f"invalid field '{key}': expected a number")
    return float(value)


# ── wire types ───────────────────────────────────────────────────


@dataclass
class HealthResult:
    """Spend status of one output."""

    spent: bool | None = None
    amount: str | None = None


@dataclass
class HealthResponse:
    """Reply to a health check."""

    status: str
    results: dict[str, HealthResult]

    @classmethod
    def from_json(cls, data: Any) -> "HealthResponse":
        """Build from parsed JSON."""
        data = _object(data, "health response")
        status = _string(_required(data, "status", "health response"), "status")
        raw = _object(_required(data, "results", "health response"), "results")
        results = {}
        for key, item in raw.items():
            item = _object(item, "health result")
            results[key] = HealthResult(
                spent=_optional_bool(item.get("spent"), "spent"),
                amount=_optional_string(item.get("amount"), "amount"),
            )
        return cls(status=status, results=results)


@dataclass
class Legalese:
    """Acceptance of the server's terms."""

    terms: bool = True


@dataclass
class ReplaceRequest:
    """Request to replace input webcash with new outputs."""

    webcashes: list[str]
    new_webcashes: list[str]
    legalese: Legalese = field(default_factory=Legalese)

    def to_json(self) -> dict[str, Any]:
        """Return the JSON-ready body."""
        return {
            "webcashes": list(self.webcashes),
            "new_webcashes": list(self.new_webcashes),
            "legalese": {"terms": self.legalese.terms},
        }


@dataclass
class ReplaceResponse:
    """Reply to a replacement."""

    status: str

    @classmethod
    def from_json(cls, data: Any) -> "ReplaceResponse":
        """Build from parsed JSON."""
        data = _object(data, "replace response")
        return cls(status=_string(_required(data, "status", "replace response"), "status"))


@dataclass
class TargetResponse:
    """Current mining target."""

    difficulty_target_bits: int
    epoch: int
    mining_amount: str
    mining_subsidy_amount: str
    ratio: float

    @classmethod
    def from_json(cls, data: Any) -> "TargetResponse":
        """Build from parsed JSON."""
        data = _object(data, "target response")

        def get(key: str) -> Any:
            return _required(data, key, "target response")

        return cls(
            difficulty_target_bits=_u32(get("difficulty_target_bits"), "difficulty_target_bits"),
            epoch=_u32(get("epoch"), "epoch"),
            mining_amount=_string(get("mining_amount"), "mining_amount"),
            mining_subsidy_amount=_string(get("mining_subsidy_amount"), "mining_subsidy_amount"),
            ratio=_number(get("ratio"), "ratio"),
        )


@dataclass
class MiningReportRequest:
    """Submission of a proof-of-work preimage."""

    preimage: str
    legalese: Legalese = field(default_factory=Legalese)

    def to_json(self) -> dict[str, Any]:
        """Return the JSON-ready body."""
        return {"preimage": self.preimage, "legalese": {"terms": self.legalese.terms}}


@dataclass
class MiningReportResponse:
    """Reply to a mining report."""

    status: str
    difficulty_target: int | None = None

    @classmethod
    def from_json(cls, data: Any) -> "MiningReportResponse":
        """Build from parsed JSON."""
        data = _object(data, "mining report response")
        status = _string(_required(data, "status", "mining report response"), "status")
        target = data.get("difficulty_target")
        return cls(
            status=status,
            difficulty_target=None if target is None else _u32(target, "difficulty_target"),
        )


# ── client ───────────────────────────────────────────────────────


class ServerClient:
    """Client for the webcash server endpoints."""

    def __init__(
        self,
        config: ServerConfig | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.config = config if config is not None else ServerConfig()
        self._owns_session = session is None
        self._session = session if session is not None else requests.Session()

    def __enter__(self) -> "ServerClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        """Release the HTTP session if this client created it."""
        if self._owns_session:
            self._session.close()

    def _url(self, endpoint: str) -> str:
        return f"{self.config.base_url()}{endpoint}"

    def _send(self, method: str, url: str, body: Any = None) -> requests.Response:
        kwargs: dict[str, Any] = {"timeout": self.config.timeout_seconds}
        if body is not None:
            kwargs["data"] = json.dumps(body)
            kwargs["headers"] = {"Content-Type": "application/json"}
        try:
            return self._session.request(method, url, **kwargs)
        except requests.RequestException as exc:
            raise ServerError(f"HTTP error: {exc}") from exc

    @staticmethod
    def _parse(text: str) -> Any:
        try:
            return json.loads(text)
        except ValueError as exc:
            raise ServerError(f"invalid JSON response: {exc}") from exc

    @staticmethod
    def _ok(response: requests.Response) -> bool:
        return 200 <= response.status_code < 300

    def health_check(self, webcash: Iterable[Any]) -> HealthResponse:
        """Query the spend status of public webcash."""
        body = [str(item) for item in webcash]
        response = self._send("POST", self._url(HEALTH_CHECK), body)
        if not self._ok(response):
            raise ServerError("Health check request failed")
        return HealthResponse.from_json(self._parse(response.text))

    def replace(self, request: ReplaceRequest) -> ReplaceResponse:
        """Submit a replacement."""
        response = self._send("POST", self._url(REPLACE), request.to_json())
        text = response.text
        if not self._ok(response):
            try:
                error_body = json.loads(text)
            except ValueError:
                error_body = None
            if isinstance(error_body, dict) and isinstance(error_body.get("error"), str):
                raise ServerError(f"Replace request failed: {error_body['error']}")
            status = f"{response.status_code} {response.reason or ''}".strip()
            raise ServerError(f"Replace request failed with status {status}: {text}")
        return ReplaceResponse.from_json(self._parse(text))

    def get_target(self) -> TargetResponse:
        """Fetch the current mining target."""
        response = self._send("GET", self._url(TARGET))
        if not self._ok(response):
            raise ServerError("Target request failed")
        return TargetResponse.from_json(self._parse(response.text))

    def submit_mining_report(self, report: MiningReportRequest) -> MiningReportResponse:
        """Submit a mining report."""
        response = self._send("POST", self._url(MINING_REPORT), report.to_json())
        if not self._ok(response):
            raise ServerError("Mining report submission failed")
        return MiningReportResponse.from_json(self._parse(response.text))