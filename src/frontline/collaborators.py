"""Interfaces the runtime consumes, plus an in-memory config provider.

BackendClient (frontline.backend) implements all of these over HTTP.
"""

from typing import Protocol

from frontline.behavior import BehaviorState
from frontline.errors import ConfigNotFoundError
from frontline.models import TriageResult
from frontline.session import CallState
from frontline.tenant import CompanyConfig


class ConfigProvider(Protocol):
    async def load_company_runtime_config(self, company_id: str) -> CompanyConfig: ...


class ScenarioEngine(Protocol):
    async def query(
        self,
        company_id: str,
        text: str,
        *,
        call_state: CallState,
        intent: str,
        triage_tag: str | None,
        scenario_hint: str | None,
    ) -> dict: ...


class ResponseConstructor(Protocol):
    def build_final_response(
        self,
        *,
        context: dict,
        behavior: BehaviorState | None,
        triage: TriageResult | None,
        content: str,
        is_first_turn_for_scenario: bool,
    ): ...

    def build_simple_response(self, *, context: dict, text: str, source: str): ...


class TraceStore(Protocol):
    async def log_turn(self, trace: dict) -> None: ...


class CustomerStore(Protocol):
    async def enrich_customer(self, company_id: str, customer_id: str, fields: dict) -> dict: ...


class VendorLog(Protocol):
    async def log_vendor_call(self, record: dict) -> dict: ...


class InMemoryConfigProvider:
    """Serves tenant configs from a dict. Accepts CompanyConfig or raw dicts."""

    def __init__(self, configs: dict | None = None):
        self._configs = {}
        for company_id, config in (configs or {}).items():
            self.add(company_id, config)

    def add(self, company_id: str, config) -> None:
        if not isinstance(config, CompanyConfig):
            config = CompanyConfig.from_dict({"id": company_id, **config})
        self._configs[company_id] = config

    async def load_company_runtime_config(self, company_id: str) -> CompanyConfig:
        try:
            return self._configs[company_id]
        except KeyError:
            raise ConfigNotFoundError(f"no runtime config for company {company_id}") from None
