import asyncio
import traceback
from dataclasses import dataclass

from seekchat.commands import BuiltinCommands
from seekchat.errors import ChatError
from seekchat.runtime import ChatRuntime


@dataclass(frozen=True)
class RouteResult:
    kind: str
    name: str | None
    args: str


def route(user_input: str, builtins: BuiltinCommands) -> RouteResult:
    if not user_input.startswith("/"):
        return RouteResult(kind="prompt", name=None, args=user_input)

    parts = user_input.split(maxsplit=1)
    cmd = parts[0].lstrip("/")
    args = parts[1] if len(parts) > 1 else ""
    if builtins.has_command(cmd):
        return RouteResult(kind="builtin", name=cmd, args=args)
    return RouteResult(kind="unknown", name=cmd, args=args)


class ChatREPL:
    def __init__(self, runtime: ChatRuntime):
        self.runtime = runtime
        self.builtins = BuiltinCommands(runtime)

    async def run(self, initial_message: str | None = None) -> None:
        print(f"🤖 seekchat started (model: {self.runtime.ctx.model})")
        print("Commands: /help for all commands")
        print()

        await self.runtime.refresh_sessions()
        if initial_message:
            await self.runtime.send(initial_message)

        while True:
            try:
                user_input = (await asyncio.to_thread(input, "\n> ")).strip()
                if not user_input:
                    continue

                result = route(user_input, self.builtins)
                if result.kind == "builtin":
                    if not await self.builtins.handle(result.name, result.args):
                        break
                    continue
                if result.kind == "unknown":
                    print(f"Unknown command: /{result.name}. Type /help for available commands.")
                    continue

                await self.runtime.send(result.args)

            except EOFError:
                break
            except ChatError as e:
                print(f"\n❌ {e}")
            except Exception as e:
                print(f"\n❌ Error: {e}")
                traceback.print_exc()
