import logging

import httpx

from frontline.circuit_breaker import CircuitBreaker
from frontline.errors import ConfigNotFoundError
from frontline.session import CallState
from frontline.tenant import CompanyConfig

logger = logging.getLogger(__name__)


class BackendClient:
    """HTTP client for the platform backend (config, scenarios, traces, customers, vendors).

    Wraps each call with a circuit breaker: after 3 consecutive failures,
    backend calls are skipped for 60s and graceful fallback values are
    returned so the turn keeps moving instead of hanging.  Tenant config is
    the exception: without it there is no turn, so failure raises
    ConfigNotFoundError.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._circuit = CircuitBreaker(
            failure_threshold=3,
            cooldown_seconds=60.0,
            label="Backend",
        )
        if client is not None:
            self._client = client
        else:
            headers = {"Content-Type": "application/json"}
            if api_key:
                headers["X-API-Key"] = api_key
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=self.timeout,
            )

    async def close(self):
        await self._client.aclose()

    async def load_company_runtime_config(self, company_id: str) -> CompanyConfig:
        if not self._circuit.should_try():
            raise ConfigNotFoundError(f"backend unavailable loading config for {company_id}")
        try:
            resp = await self._client.get(f"/companies/{company_id}/runtime-config")
            if resp.status_code == 404:
                self._circuit.record_success()
                raise ConfigNotFoundError(f"no runtime config for company {company_id}")
            resp.raise_for_status()
            data = resp.json()
        except ConfigNotFoundError:
            raise
        except Exception as e:
            self._circuit.record_failure()
            logger.error("load_company_runtime_config failed: %s", e)
            raise ConfigNotFoundError(f"could not load config for {company_id}: {e}") from e
        self._circuit.record_success()
        return CompanyConfig.from_dict({"id": company_id, **data})

    async def query(
        self,
        company_id: str,
        text: str,
        *,
        call_state: CallState,
        intent: str,
        triage_tag: str | None,
        scenario_hint: str | None,
    ) -> dict:
        if not self._circuit.should_try():
            logger.warning("Backend circuit breaker open, skipping scenario query")
            return {"response": "", "confidence": 0.0, "metadata": {"error": "backend unavailable"}}
        try:
            resp = await self._client.post(
                f"/companies/{company_id}/scenarios/query",
                json={
                    "text": text,
                    "call_id": call_state.call_id,
                    "call_state": call_state.to_dict(),
                    "intent": intent,
                    "triage_tag": triage_tag,
                    "scenario_hint": scenario_hint,
                },
            )
            resp.raise_for_status()
            self._circuit.record_success()
            return resp.json()
        except Exception as e:
            self._circuit.record_failure()
            logger.error("scenario query failed: %s", e)
            return {"response": "", "confidence": 0.0, "metadata": {"error": str(e)}}

    async def log_turn(self, trace: dict) -> None:
        if not self._circuit.should_try():
            logger.warning("Backend circuit breaker open, dropping trace %s", trace.get("trace_id"))
            return
        try:
            resp = await self._client.post("/traces", json=trace)
            resp.raise_for_status()
            self._circuit.record_success()
        except Exception as e:
            self._circuit.record_failure()
            logger.error("log_turn failed: %s", e)

    async def enrich_customer(self, company_id: str, customer_id: str, fields: dict) -> dict:
        if not self._circuit.should_try():
            logger.warning("Backend circuit breaker open, skipping customer enrichment")
            return {"success": False, "error": "backend unavailable"}
        try:
            resp = await self._client.patch(
                f"/companies/{company_id}/customers/{customer_id}",
                json={k: v for k, v in fields.items() if v not in (None, "", {})},
            )
            resp.raise_for_status()
            self._circuit.record_success()
            return resp.json()
        except Exception as e:
            self._circuit.record_failure()
            logger.error("enrich_customer failed: %s", e)
            return {"success": False, "error": str(e)}

    async def log_vendor_call(self, record: dict) -> dict:
        if not self._circuit.should_try():
            logger.warning("Backend circuit breaker open, vendor call not logged")
            return {"success": False, "error": "backend unavailable"}
        try:
            resp = await self._client.post(
                f"/companies/{record.get('company_id', '')}/vendor-calls",
                json=record,
            )
            resp.raise_for_status()
            self._circuit.record_success()
            return resp.json()
        except Exception as e:
            self._circuit.record_failure()
            logger.error("log_vendor_call failed: %s", e)
            return {"success": False, "error": str(e)}
