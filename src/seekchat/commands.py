import shlex

from seekchat.client.attachments import attach_files, detach_file, read_attachments
from seekchat.config import resolve_model_alias, toggle_model
from seekchat.errors import ChatError


class BuiltinCommands:
    def __init__(self, runtime):
        self.runtime = runtime
        self._handlers = {
            "quit": self.cmd_quit,
            "exit": self.cmd_quit,
            "new": self.cmd_new,
            "sessions": self.cmd_sessions,
            "switch": self.cmd_switch,
            "delete": self.cmd_delete,
            "attach": self.cmd_attach,
            "files": self.cmd_files,
            "detach": self.cmd_detach,
            "prompt": self.cmd_prompt,
            "model": self.cmd_model,
            "history": self.cmd_history,
            "help": self.cmd_help,
        }

    def list_commands(self) -> list[str]:
        return sorted(self._handlers.keys())

    def has_command(self, name: str) -> bool:
        return name in self._handlers

    async def handle(self, name: str, args: str) -> bool:
        handler = self._handlers.get(name)
        if not handler:
            return True
        try:
            return await handler(args)
        except ChatError as e:
            print(f"❌ {e}")
            return True

    async def cmd_quit(self, args: str) -> bool:
        print("👋 Goodbye!")
        return False

    async def cmd_new(self, args: str) -> bool:
        record = await self.runtime.new_session(args.strip() or None)
        print(f"✅ Started session {record.id} - {record.name}")
        return True

    async def cmd_sessions(self, args: str) -> bool:
        sessions = await self.runtime.refresh_sessions()
        if not sessions:
            print("No saved sessions")
            return True
        print("Sessions:")
        for record in sessions:
            marker = "*" if record.id == self.runtime.ctx.session_id else " "
            print(f" {marker} {record.id} - {record.name} ({len(record.messages)} messages)")
        return True

    async def cmd_switch(self, args: str) -> bool:
        if not args:
            print("Usage: /switch <id>")
            return True
        ctx = await self.runtime.switch(args.strip())
        print(f"✅ Switched to {ctx.session_id} - {ctx.name} ({len(ctx.messages)} messages)")
        return True

    async def cmd_delete(self, args: str) -> bool:
        if not args:
            print("Usage: /delete <id>")
            return True
        await self.runtime.delete(args.strip())
        print(f"✅ Deleted session {args.strip()}")
        return True

    async def cmd_attach(self, args: str) -> bool:
        paths = shlex.split(args)
        if not paths:
            print("Usage: /attach <file> [file ...]")
            return True
        picked, skipped = read_attachments(paths)
        for reason in skipped:
            print(f"⚠️  Skipped {reason}")
        if not picked:
            return True
        ctx = await self.runtime.ensure_session()
        await attach_files(self.runtime.backend, ctx, picked)
        print(f"📎 Attached {', '.join(item.name for item in picked)}")
        return True

    async def cmd_files(self, args: str) -> bool:
        if not self.runtime.ctx.attachments:
            print("No files attached")
            return True
        print("Attached files:")
        for item in self.runtime.ctx.attachments:
            print(f"  • {item.name} ({len(item.content)} chars)")
        return True

    async def cmd_detach(self, args: str) -> bool:
        if not args:
            print("Usage: /detach <name>")
            return True
        await detach_file(self.runtime.backend, self.runtime.ctx, args.strip())
        print(f"✅ Detached {args.strip()}")
        return True

    async def cmd_prompt(self, args: str) -> bool:
        text = args.strip()
        if not text:
            current = await self.runtime.backend.load_system_prompt()
            print(f"System prompt: {current!r}" if current else "System prompt is empty")
            return True
        if text == "--clear":
            await self.runtime.backend.save_system_prompt("")
            print("✅ System prompt cleared")
            return True
        await self.runtime.backend.save_system_prompt(text)
        print("✅ System prompt saved")
        return True

    async def cmd_model(self, args: str) -> bool:
        ctx = self.runtime.ctx
        ctx.model = resolve_model_alias(args) if args.strip() else toggle_model(ctx.model)
        print(f"✅ Switched to model: {ctx.model}")
        return True

    async def cmd_history(self, args: str) -> bool:
        ctx = self.runtime.ctx
        if not ctx.messages and not ctx.notices:
            print("No messages in this session")
            return True
        for message in ctx.messages:
            print(f"[{message.role.value}] {message.content}")
        for notice in ctx.notices:
            print(f"[notice] {notice.content}")
        return True

    async def cmd_help(self, args: str) -> bool:
        print("\nCommands:")
        for name in self.list_commands():
            print(f"  /{name}")
        print("\nCtrl-C while a response streams stops it.")
        print()
        return True
