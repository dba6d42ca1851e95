"""
命令行 demo：注册一个人设 agent，然后循环提问。

用法：
  python -m agenticlab.scripts.demo                       # 本地 Ollama
  python -m agenticlab.scripts.demo --mock                # 不联网
  python -m agenticlab.scripts.demo --agent Summarizer --temperature 0.2
"""
from __future__ import annotations

import argparse
import asyncio
import logging

from agenticlab.agents import personas
from agenticlab.config import settings
from agenticlab.models.mock_client import MockBackend
from agenticlab.models.ollama import OllamaBackend
from agenticlab.runtime.agent_runtime import AgentRuntime
from agenticlab.sampling import SamplingOverrides
from agenticlab.types import AgentRequest, Message

logger = logging.getLogger(__name__)


async def repl(runtime: AgentRuntime, agent_name: str, overrides: SamplingOverrides) -> None:
    history: list[Message] = []
    print("Type a question (or 'quit' to exit):")
    while True:
        try:
            line = (await asyncio.to_thread(input, "\n> ")).strip()
        except EOFError:
            break
        if not line:
            continue
        if line.lower() in ("quit", "exit"):
            break

        response = await runtime.send(agent_name, AgentRequest(message=line, history=list(history), overrides=overrides))
        print(f"\n[{response.agent_name}] {response.message}")
        if response.success:
            meta = response.metadata
            print(f"  (model={meta.get('model')}, prompt={meta.get('promptTokens')}, completion={meta.get('completionTokens')})")
            history.append({"role": "user", "content": line})
            history.append({"role": "assistant", "content": response.message})


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--agent", default="SimpleQuestion", choices=personas.registered_types())
    ap.add_argument("--model", default=settings.OLLAMA_MODEL)
    ap.add_argument("--mock", action="store_true", help="用 MockBackend，不需要 Ollama")
    ap.add_argument("--temperature", type=float)
    ap.add_argument("--max-tokens", type=int)
    args = ap.parse_args()

    logging.basicConfig(level=settings.LOG_LEVEL)

    backend = MockBackend() if args.mock else OllamaBackend(model=args.model)
    runtime = AgentRuntime()
    runtime.register(personas.create_agent(args.agent, backend))
    logger.info("Registered agents: %s", ", ".join(runtime.list_registered()))

    overrides = SamplingOverrides(temperature=args.temperature, max_tokens=args.max_tokens)
    asyncio.run(repl(runtime, args.agent, overrides))


if __name__ == "__main__":
    main()
