"""
tests/test_stack.py — Stack system tests.

Output references, write-once outputs, configuration
resolution, backends and the lifecycle hook.
"""

import asyncio
import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from stackhost.config import Configuration
from stackhost.core.collector import _reset
from stackhost.core.context import ExecutionContext
from stackhost.core.model import Application, application
from stackhost.core.resources import ProjectResource
from stackhost.core.values import ConfigValue, OutputValue
from stackhost.logging import configure_logging
from stackhost.stack.backend import (
    Backend, StackWorkspace, UpResult, InlineBackend, PulumiBackend, get_backend,
)
from stackhost.stack.config import resolve_configure, stack_section
from stackhost.stack.engine import StackLifecycleHook
from stackhost.stack.errors import (
    StackError, OutputsUnavailable, UnknownOutput,
    OutputsAlreadySetError, ProvisioningError, RefError,
)
from stackhost.stack.refs import OutputReference, resolve_expressions
from stackhost.stack.resource import StackResource, add_stack


@pytest.fixture(autouse=True)
def clean():
    _reset()
    yield
    _reset()


def _program():
    return {"BlobEndpoint": "https://x"}


class RecordingWorkspace(StackWorkspace):
    def __init__(self, backend, stack_name, program):
        self.backend = backend
        self.stack_name = stack_name
        self.program = program

    async def set_all_config(self, stack_name, config):
        self.backend.calls.append(("set_all_config", stack_name))
        self.backend.configs[stack_name] = dict(config)
        self.backend._maybe_fail(stack_name, "set_all_config")

    async def up(self):
        self.backend.calls.append(("up", self.stack_name))
        if self.stack_name in self.backend.block_up:
            await asyncio.Event().wait()
        self.backend._maybe_fail(self.stack_name, "up")
        outputs = self.program() or {}
        return UpResult({k: OutputValue(v) for k, v in outputs.items()})


class RecordingBackend(Backend):
    """Backend double that records every call."""

    name = "recording"

    def __init__(self, fail=None, block_up=()):
        self.calls = []
        self.configs = {}
        self.fail = fail or {}
        self.block_up = set(block_up)

    def _maybe_fail(self, stack_name, step):
        if self.fail.get(stack_name) == step:
            raise RuntimeError(f"{step} exploded for {stack_name}")

    async def create_or_select(self, project_name, stack_name, program):
        self.calls.append(("create_or_select", project_name, stack_name))
        self._maybe_fail(stack_name, "create_or_select")
        return RecordingWorkspace(self, stack_name, program)


# ─────────────────────────────────────────────
# OUTPUT REFERENCES
# ─────────────────────────────────────────────
class TestOutputReference:
    def test_value_before_provisioning_raises(self):
        dev = StackResource("dev", _program)
        with pytest.raises(OutputsUnavailable, match="not available yet"):
            dev.get_output("BlobEndpoint").value

    def test_value_after_provisioning(self):
        dev = StackResource("dev", _program)
        dev.set_outputs({"BlobEndpoint": OutputValue("https://x")})
        assert dev.get_output("BlobEndpoint").value == "https://x"

    def test_unknown_output_raises(self):
        dev = StackResource("dev", _program)
        dev.set_outputs({"BlobEndpoint": OutputValue("https://x")})
        with pytest.raises(UnknownOutput, match="output named 'Missing'"):
            dev.get_output("Missing").value

    def test_structured_value_is_returned_as_is(self):
        dev = StackResource("dev", _program)
        dev.set_outputs({"Config": OutputValue({"a": [1, 2]})})
        assert dev.get_output("Config").value == {"a": [1, 2]}

    def test_value_expression_is_independent_of_state(self):
        dev = StackResource("dev", _program)
        ref = OutputReference("X", dev)
        assert ref.value_expression == "{dev.outputs.X}"
        dev.set_outputs({})
        assert ref.value_expression == "{dev.outputs.X}"

    def test_many_references_share_outputs(self):
        dev = StackResource("dev", _program)
        a = dev.get_output("BlobEndpoint")
        b = dev.get_output("BlobEndpoint")
        dev.set_outputs({"BlobEndpoint": OutputValue("https://x")})
        assert a.value == b.value == "https://x"


class TestResolveExpressions:
    def test_substitutes_placeholders(self):
        dev = StackResource("dev", _program)
        dev.set_outputs({"Host": OutputValue("db.local"), "Port": OutputValue(5432)})
        text = "postgres://{dev.outputs.Host}:{dev.outputs.Port}/app"
        assert resolve_expressions(text, [dev]) == "postgres://db.local:5432/app"

    def test_unknown_stack_raises(self):
        with pytest.raises(RefError, match="Unknown stack"):
            resolve_expressions("{prod.outputs.Host}", [])

    def test_plain_text_untouched(self):
        assert resolve_expressions("{not a ref}", []) == "{not a ref}"


# ─────────────────────────────────────────────
# STACK RESOURCE
# ─────────────────────────────────────────────
class TestStackResource:
    def test_outputs_absent_initially(self):
        dev = StackResource("dev", _program)
        assert dev.outputs is None
        assert not dev.is_provisioned

    def test_outputs_are_write_once(self):
        dev = StackResource("dev", _program)
        dev.set_outputs({"A": OutputValue("1")})
        with pytest.raises(OutputsAlreadySetError):
            dev.set_outputs({"A": OutputValue("2")})
        assert dev.get_output("A").value == "1"

    def test_outputs_are_read_only(self):
        dev = StackResource("dev", _program)
        dev.set_outputs({"A": OutputValue("1")})
        with pytest.raises(TypeError):
            dev.outputs["A"] = OutputValue("2")

    @pytest.mark.parametrize("name", ["my.stack", "a b", "dev{x}", ""])
    def test_invalid_stack_name_raises(self, name):
        with pytest.raises(ValueError):
            StackResource(name, _program)

    def test_every_valid_name_resolves(self):
        stack = StackResource("my_stack-2", _program)
        stack.set_outputs({"Host": OutputValue("db")})
        ref = stack.get_output("Host")
        assert resolve_expressions(ref.value_expression, [stack]) == "db"

    def test_program_must_be_callable(self):
        with pytest.raises(TypeError):
            StackResource("dev", "not a program")

    def test_manifest_entry(self):
        dev = StackResource("dev", _program)
        assert dev.write_to_manifest(ExecutionContext.publish()) == {"type": "pulimistack.v0"}

    def test_add_stack_registers_with_app(self):
        app = Application("demo")
        dev = add_stack(app, "dev", _program)
        assert app.get("dev") is dev

    def test_add_stack_inside_block(self):
        with application("demo") as app:
            add_stack(app, "dev", _program)
        assert len(app.resources) == 1

    def test_add_stack_does_not_wire_hooks(self):
        app = Application("demo")
        add_stack(app, "dev", _program)
        assert app.lifecycle_hooks == []


# ─────────────────────────────────────────────
# CONFIGURATION RESOLUTION
# ─────────────────────────────────────────────
class TestResolveConfigure:
    def test_section_name(self):
        assert stack_section("dev") == "Pulumi:Stacks:dev"

    def test_missing_section_returns_callback_unchanged(self):
        def configure(c):
            pass

        assert resolve_configure(Configuration(), "Pulumi:Stacks:dev", configure) is configure
        assert resolve_configure(Configuration(), "Pulumi:Stacks:dev", None) is None

    def test_section_only(self):
        config = Configuration({"Pulumi": {"Stacks": {"dev": {"region": "us-east-1"}}}})
        cb = resolve_configure(config, "Pulumi:Stacks:dev")
        result = {}
        cb(result)
        assert result == {"region": ConfigValue("us-east-1")}

    def test_callback_overrides_section(self):
        config = Configuration({"Pulumi": {"Stacks": {"dev": {"a": "1", "b": "2"}}}})

        def configure(c):
            c["b"] = ConfigValue("override")

        cb = resolve_configure(config, "Pulumi:Stacks:dev", configure)
        result = {}
        cb(result)
        assert {k: v.value for k, v in result.items()} == {"a": "1", "b": "override"}

    def test_nested_keys_keep_namespace(self):
        config = Configuration({"Pulumi": {"Stacks": {"dev": {"aws": {"region": "eu-west-1"}}}}})
        result = {}
        resolve_configure(config, "Pulumi:Stacks:dev")(result)
        assert list(result) == ["aws:region"]

    def test_null_values_skipped(self):
        config = Configuration({"Pulumi": {"Stacks": {"dev": {"a": None, "b": "2"}}}})
        result = {}
        resolve_configure(config, "Pulumi:Stacks:dev")(result)
        assert list(result) == ["b"]

    def test_discovered_values_are_not_secret(self):
        config = Configuration({"Pulumi": {"Stacks": {"dev": {"password": "hunter2"}}}})
        result = {}
        resolve_configure(config, "Pulumi:Stacks:dev")(result)
        assert result["password"].secret is False

    def test_other_stacks_ignored(self):
        config = Configuration({"Pulumi": {"Stacks": {
            "dev": {"a": "1"},
            "devtest": {"b": "2"},
        }}})
        result = {}
        resolve_configure(config, "Pulumi:Stacks:dev")(result)
        assert list(result) == ["a"]

    def test_add_stack_uses_app_configuration(self):
        config = Configuration()
        config.add_set_args(["Pulumi:Stacks:dev:region=us-east-1"])
        app = Application("demo", configuration=config)
        dev = add_stack(app, "dev", _program)
        result = {}
        dev.configure(result)
        assert result == {"region": ConfigValue("us-east-1")}


# ─────────────────────────────────────────────
# BACKENDS
# ─────────────────────────────────────────────
class TestBackends:
    def test_inline_runs_program(self):
        backend = InlineBackend()

        async def go():
            ws = await backend.create_or_select("demo", "dev", _program)
            await ws.set_all_config("dev", {"a": ConfigValue("1")})
            return ws, await ws.up()

        ws, result = asyncio.run(go())
        assert result.outputs == {"BlobEndpoint": OutputValue("https://x")}
        assert ws.config == {"a": ConfigValue("1")}

    def test_inline_program_returning_none(self):
        backend = InlineBackend()

        async def go():
            ws = await backend.create_or_select("demo", "dev", lambda: None)
            return await ws.up()

        assert asyncio.run(go()).outputs == {}

    def test_inline_program_returning_non_mapping_raises(self):
        backend = InlineBackend()

        async def go():
            ws = await backend.create_or_select("demo", "dev", lambda: 42)
            return await ws.up()

        with pytest.raises(StackError, match="mapping"):
            asyncio.run(go())

    def test_inline_keeps_secret_outputs(self):
        backend = InlineBackend()

        async def go():
            ws = await backend.create_or_select(
                "demo", "dev", lambda: {"Key": OutputValue("s3cr3t", secret=True)})
            return await ws.up()

        assert asyncio.run(go()).outputs["Key"].secret is True

    def test_get_backend(self):
        assert isinstance(get_backend("inline"), InlineBackend)
        pulumi = get_backend("pulumi", work_dir="/tmp/ws")
        assert isinstance(pulumi, PulumiBackend)
        assert pulumi.work_dir == "/tmp/ws"

    def test_get_backend_unknown(self):
        with pytest.raises(StackError, match="Unknown backend"):
            get_backend("terraform")


# ─────────────────────────────────────────────
# LIFECYCLE HOOK
# ─────────────────────────────────────────────
def _start(app, context=None):
    return asyncio.run(app.start(context))


class TestLifecycleHook:
    def _app(self, configuration=None):
        with application("demo", configuration=configuration) as app:
            dev = add_stack(app, "dev", _program)
            ProjectResource("api").with_environment(
                "StorageEndpoint", dev.get_output("BlobEndpoint"))
        return app

    def test_run_mode_provisions(self):
        backend = RecordingBackend()
        app = self._app()
        app.add_lifecycle_hook(StackLifecycleHook(backend))

        envs = _start(app)

        assert app.get("dev").get_output("BlobEndpoint").value == "https://x"
        assert envs == {"api": {"StorageEndpoint": "https://x"}}
        assert backend.calls == [
            ("create_or_select", "demo", "dev"),
            ("set_all_config", "dev"),
            ("up", "dev"),
        ]

    def test_publish_mode_makes_no_backend_calls(self):
        backend = RecordingBackend()
        app = self._app()
        app.add_lifecycle_hook(StackLifecycleHook(backend))

        manifest = asyncio.run(app.publish())

        assert backend.calls == []
        assert app.get("dev").outputs is None
        api = manifest.to_dict()["resources"]["api"]
        assert api["env"] == {"StorageEndpoint": "{dev.outputs.BlobEndpoint}"}

    def test_project_name_from_context(self):
        backend = RecordingBackend()
        app = self._app()
        app.add_lifecycle_hook(StackLifecycleHook(backend))
        _start(app, ExecutionContext.run("other-name"))
        assert backend.calls[0] == ("create_or_select", "other-name", "dev")

    def test_configuration_is_pushed(self):
        config = Configuration()
        config.add_set_args(["Pulumi:Stacks:dev:region=us-east-1"])
        backend = RecordingBackend()
        app = self._app(configuration=config)
        app.add_lifecycle_hook(StackLifecycleHook(backend))

        _start(app)

        assert backend.configs["dev"] == {"region": ConfigValue("us-east-1")}

    def test_empty_configuration_without_section_or_callback(self):
        backend = RecordingBackend()
        app = self._app()
        app.add_lifecycle_hook(StackLifecycleHook(backend))
        _start(app)
        assert backend.configs["dev"] == {}

    def test_stacks_provisioned_in_declaration_order(self):
        backend = RecordingBackend()
        app = Application("demo")
        add_stack(app, "network", lambda: {})
        add_stack(app, "dev", _program)
        add_stack(app, "cache", lambda: {})
        app.add_lifecycle_hook(StackLifecycleHook(backend))

        _start(app)

        ups = [c[1] for c in backend.calls if c[0] == "up"]
        assert ups == ["network", "dev", "cache"]

    def test_up_failure_aborts_remaining_stacks(self):
        backend = RecordingBackend(fail={"dev": "up"})
        app = Application("demo")
        add_stack(app, "dev", _program)
        add_stack(app, "cache", lambda: {})
        app.add_lifecycle_hook(StackLifecycleHook(backend))

        with pytest.raises(ProvisioningError, match="up exploded for dev") as exc:
            _start(app)

        assert isinstance(exc.value.__cause__, RuntimeError)
        assert exc.value.stack == "dev"
        assert exc.value.step == "up"
        assert all(c[-1] != "cache" for c in backend.calls)
        assert app.get("dev").outputs is None
        assert app.get("cache").outputs is None

    @pytest.mark.parametrize("step", ["create_or_select", "set_all_config"])
    def test_failure_in_any_step_propagates(self, step):
        backend = RecordingBackend(fail={"dev": step})
        app = Application("demo")
        add_stack(app, "dev", _program)
        app.add_lifecycle_hook(StackLifecycleHook(backend))

        with pytest.raises(ProvisioningError) as exc:
            _start(app)
        assert exc.value.step == step

    def test_earlier_stacks_stay_applied(self):
        backend = RecordingBackend(fail={"cache": "up"})
        app = Application("demo")
        add_stack(app, "dev", _program)
        add_stack(app, "cache", lambda: {})
        app.add_lifecycle_hook(StackLifecycleHook(backend))

        with pytest.raises(ProvisioningError):
            _start(app)
        assert app.get("dev").outputs is not None

    def test_second_start_does_not_reapply(self):
        backend = RecordingBackend()
        app = self._app()
        app.add_lifecycle_hook(StackLifecycleHook(backend))
        _start(app)
        with pytest.raises(OutputsAlreadySetError, match="already provisioned"):
            _start(app)
        assert backend.calls.count(("up", "dev")) == 1
        assert backend.calls.count(("create_or_select", "demo", "dev")) == 1

    def test_configure_failure_is_provisioning_error(self):
        def configure(c):
            raise KeyError("missing setting")

        backend = RecordingBackend()
        app = Application("demo")
        add_stack(app, "dev", _program, configure=configure)
        add_stack(app, "cache", lambda: {})
        app.add_lifecycle_hook(StackLifecycleHook(backend))

        with pytest.raises(ProvisioningError, match="during configure") as exc:
            _start(app)
        assert isinstance(exc.value.__cause__, KeyError)
        assert ("up", "dev") not in backend.calls
        assert all(c[-1] != "cache" for c in backend.calls)

    def test_secrets_not_logged(self, capsys):
        configure_logging("debug")
        try:
            app = Application("demo")
            add_stack(app, "dev", _program, configure=lambda c: c.update(
                region=ConfigValue("us-east-1"),
                pw=ConfigValue("hunter2", secret=True),
            ))
            app.add_lifecycle_hook(StackLifecycleHook(RecordingBackend()))
            _start(app)
            captured = capsys.readouterr()
        finally:
            configure_logging("warning")

        logs = captured.err + captured.out
        assert "stack_configured" in logs
        assert "us-east-1" in logs
        assert "[secret]" in logs
        assert "hunter2" not in logs

    def test_cancellation_stops_remaining_stacks(self):
        backend = RecordingBackend(block_up={"dev"})
        app = Application("demo")
        add_stack(app, "dev", _program)
        add_stack(app, "cache", lambda: {})
        app.add_lifecycle_hook(StackLifecycleHook(backend))

        async def go():
            task = asyncio.ensure_future(app.start())
            while ("up", "dev") not in backend.calls:
                await asyncio.sleep(0)
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                return "cancelled"
            return "finished"

        assert asyncio.run(go()) == "cancelled"

        assert all(c[-1] != "cache" for c in backend.calls)
        assert app.get("dev").outputs is None

    def test_inline_backend_end_to_end(self):
        app = self._app()
        app.add_lifecycle_hook(StackLifecycleHook(InlineBackend()))
        envs = _start(app)
        assert envs["api"]["StorageEndpoint"] == "https://x"
