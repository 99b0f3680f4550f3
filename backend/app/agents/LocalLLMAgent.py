"""LocalLLMAgent - queries a local model over the Ollama HTTP API

Actions:
    query: {prompt, options?: {maxTokens, temperature, timeout}} -> {response, model}
    check-availability: -> {available, models}
"""

import logging

import httpx

logger = logging.getLogger("agents.LocalLLMAgent")


class LocalLLMAgent:
    name = "LocalLLMAgent"
    description = "Local LLM query capability (Ollama HTTP API)"

    def __init__(self):
        self.endpoint = "http://localhost:11434"
        self.model = "phi4-mini:latest"
        self.timeout = 30.0

    async def bootstrap(self, config, context):
        self.endpoint = str(config.get("endpoint", self.endpoint)).rstrip("/")
        self.model = config.get("model", self.model)
        self.timeout = float(config.get("timeout", self.timeout))
        logger.info(f"🤖 LocalLLMAgent using {self.model} at {self.endpoint}")
        return {"success": True}

    async def execute(self, params, context):
        action = params.get("action", "query")
        if action == "query":
            return await self.query(params.get("prompt"), params.get("options") or {})
        if action == "check-availability":
            return await self.check_availability()
        return {"success": False, "error": f"Unknown action: {action}"}

    async def query(self, prompt, options):
        if not prompt:
            return {"success": False, "error": "prompt is required"}

        payload = {
            "model": options.get("model", self.model),
            "prompt": prompt,
            "stream": False,
            "options": {
                "num_predict": options.get("maxTokens", 256),
                "temperature": options.get("temperature", 0.2),
            },
        }
        timeout = options.get("timeout", self.timeout)
        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                response = await client.post(f"{self.endpoint}/api/generate", json=payload)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as e:
            logger.warning(f"⚠️ Local LLM request failed: {e}")
            return {"success": False, "error": f"Local LLM unavailable: {e}"}

        text = (data.get("response") or "").strip()
        if not text:
            return {"success": False, "error": "Local LLM returned an empty response"}
        return {"success": True, "response": text, "model": payload["model"]}

    async def check_availability(self):
        try:
            async with httpx.AsyncClient(timeout=5.0) as client:
                response = await client.get(f"{self.endpoint}/api/tags")
                response.raise_for_status()
                models = [m.get("name") for m in response.json().get("models", [])]
        except httpx.HTTPError as e:
            return {"success": True, "available": False, "error": str(e)}
        return {"success": True, "available": self.model in models, "models": models}


AGENT_FORMAT = LocalLLMAgent()
