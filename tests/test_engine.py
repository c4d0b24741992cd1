"""
Engine tests: block ordering, interpolation, diffing and the
plan/apply/destroy/import lifecycle against the in-memory Azure fake.
"""
import json

import pytest

from azure_fakes import SUBSCRIPTION_ID, FakeAzure

STORAGE_ID = (
    f"/subscriptions/{SUBSCRIPTION_ID}/resourceGroups/acctestRG-engine"
    "/providers/Microsoft.Storage/storageAccounts/acctestsaengine"
)

_CONFIG = """
data "azurerm_client_config" "current" {}

resource "azurerm_resource_group" "test" {
  name     = "acctestRG-engine"
  location = "West Europe"
}
"""

_ACCOUNT = """
resource "azurerm_storage_account" "test" {
  name                     = "acctestsaengine"
  resource_group_name      = azurerm_resource_group.test.name
  location                 = azurerm_resource_group.test.location
  account_tier             = "%(tier)s"
  account_replication_type = "%(replication)s"

  tags = {
    environment  = "%(env)s"
    subscription = data.azurerm_client_config.current.subscription_id
  }
}
"""


def config(tier="Standard", replication="LRS", env="test", account=True):
    from azprovider.parsers.terraform import parse_string
    text = _CONFIG
    if account:
        text += _ACCOUNT % {"tier": tier, "replication": replication, "env": env}
    return parse_string(text, "main.tf")


def _actions(engine):
    return {c.address: c.action for c in engine.changes}


# --------------------------------------------------------- ordering
class TestOrder:
    def setup_method(self):
        from azprovider.engine import Engine
        from azprovider.models.resource import ConfigBlock
        self.engine = Engine()
        self.Block = ConfigBlock

    def test_dependencies_come_first(self):
        blocks = config()
        ordered = [b.address for b in self.engine.order(list(reversed(blocks)))]
        assert ordered.index("azurerm_resource_group.test") < ordered.index("azurerm_storage_account.test")
        assert ordered.index("data.azurerm_client_config.current") < ordered.index("azurerm_storage_account.test")

    def test_provider_blocks_are_not_ordered(self):
        blocks = [self.Block("provider", "azurerm", "default")] + config(account=False)
        assert all(b.mode != "provider" for b in self.engine.order(blocks))

    def test_duplicate(self):
        from azprovider.errors import ProviderError
        blocks = [self.Block("managed", "azurerm_resource_group", "a")] * 2
        with pytest.raises(ProviderError, match="duplicate block azurerm_resource_group.a"):
            self.engine.order(blocks)

    def test_undeclared_reference(self):
        from azprovider.errors import ProviderError
        block = self.Block("managed", "azurerm_storage_account", "a", relationships=["azurerm_resource_group.b"])
        with pytest.raises(ProviderError, match="reference to undeclared azurerm_resource_group.b"):
            self.engine.order([block])

    def test_cycle(self):
        from azprovider.errors import ProviderError
        a = self.Block("managed", "azurerm_resource_group", "a", relationships=["azurerm_resource_group.b"])
        b = self.Block("managed", "azurerm_resource_group", "b", relationships=["azurerm_resource_group.a"])
        with pytest.raises(ProviderError, match="cycle between blocks"):
            self.engine.order([a, b])


# --------------------------------------------------------- interpolation
class TestInterpolate:
    def setup_method(self):
        from azprovider import engine
        from azprovider.models.state import InstanceState
        self.engine = engine
        self.state = engine.State()
        self.state.put(engine.StateEntry("managed", "azurerm_resource_group", "test", InstanceState(
            id="/subscriptions/s/resourceGroups/rg",
            attributes={"name": "rg", "tags": {"env": "test"}, "plan": [{"name": "p"}], "enabled": True},
        )))

    def _i(self, value, **kwargs):
        return self.engine.interpolate(value, self.state, **kwargs)

    def test_whole_reference_keeps_type(self):
        assert self._i("${azurerm_resource_group.test.tags}") == {"env": "test"}
        assert self._i("${azurerm_resource_group.test.enabled}") is True

    def test_embedded_reference_is_stringified(self):
        assert self._i("prefix-${azurerm_resource_group.test.name}-${azurerm_resource_group.test.enabled}") == (
            "prefix-rg-true"
        )

    def test_id(self):
        assert self._i("${azurerm_resource_group.test.id}") == "/subscriptions/s/resourceGroups/rg"

    def test_indexing(self):
        assert self._i("${azurerm_resource_group.test.plan[0].name}") == "p"
        assert self._i("${azurerm_resource_group.test.plan.0.name}") == "p"
        assert self._i('${azurerm_resource_group.test.tags["env"]}') == "test"

    def test_nested_values(self):
        value = {"a": ["${azurerm_resource_group.test.name}", 1], "b": True}
        assert self._i(value) == {"a": ["rg", 1], "b": True}

    def test_missing_block(self):
        from azprovider.errors import ProviderError
        with pytest.raises(ProviderError, match="not in the state"):
            self._i("${azurerm_storage_account.test.id}")
        assert self._i("${azurerm_storage_account.test.id}", unknown_ok=True) == "${azurerm_storage_account.test.id}"

    def test_missing_attribute(self):
        from azprovider.errors import ProviderError
        with pytest.raises(ProviderError, match="does not have an attribute named 'colour'"):
            self._i("${azurerm_resource_group.test.colour}")

    def test_unsupported_expression(self):
        from azprovider.errors import ProviderError
        with pytest.raises(ProviderError, match="only references to other blocks are supported"):
            self._i('${split(",", "a,b")}')


# --------------------------------------------------------- diffing
class TestDiff:
    def setup_method(self):
        from azprovider import commonschema
        from azprovider.engine import values_equal
        from azprovider.models.schema import FieldType, Schema
        self.eq = values_equal
        self.Schema = Schema
        self.T = FieldType
        self.commonschema = commonschema

    def test_sets_ignore_order(self):
        s = self.Schema(self.T.SET, elem=self.Schema(self.T.STRING))
        assert self.eq(s, ["a", "b"], ["b", "a"])
        assert not self.eq(s, ["a"], ["a", "b"])

    def test_set_of_blocks_ignores_order(self):
        s = self.Schema(self.T.SET, elem={"id": self.Schema(self.T.STRING)})
        assert self.eq(s, [{"id": "1"}, {"id": "2"}], [{"id": "2"}, {"id": "1"}])

    def test_list_of_blocks_keeps_order(self):
        s = self.Schema(self.T.LIST, elem={"id": self.Schema(self.T.STRING)})
        assert not self.eq(s, [{"id": "1"}, {"id": "2"}], [{"id": "2"}, {"id": "1"}])

    def test_json_suppression(self):
        s = self.Schema(self.T.STRING, diff_suppress_func=self.commonschema.suppress_json_diff)
        assert self.eq(s, '{"a":1,"b":2}', '{\n  "b": 2,\n  "a": 1\n}')
        assert not self.eq(s, '{"a":1}', '{"a":2}')

    def test_location_suppression(self):
        assert self.eq(self.commonschema.location(), "westeurope", "West Europe")

    def test_none_is_zero_value(self):
        assert self.eq(self.Schema(self.T.MAP), None, {})
        assert self.eq(self.Schema(self.T.STRING), None, "")


# --------------------------------------------------------- lifecycle
class TestLifecycle:
    def setup_method(self):
        from azprovider import engine
        self.azure = FakeAzure()
        self.client = self.azure.client()
        self.module = engine
        self.engine = engine.Engine(client=self.client)

    def _apply(self, blocks, state=None):
        return self.engine.apply(blocks, state)

    def test_apply_creates_everything(self):
        state = self._apply(config())
        assert _actions(self.engine) == {
            "data.azurerm_client_config.current": "read",
            "azurerm_resource_group.test": "create",
            "azurerm_storage_account.test": "create",
        }
        account = state.get("azurerm_storage_account.test").instance
        assert account.id == STORAGE_ID
        assert account.attributes["location"] == "westeurope"
        assert account.attributes["tags"] == {"environment": "test", "subscription": SUBSCRIPTION_ID}
        assert account.attributes["primary_access_key"] == "acctestsaengine-key1=="
        assert account.attributes["secondary_location"] == ""

    def test_second_apply_is_a_no_op(self):
        state = self._apply(config())
        self._apply(config(), state)
        assert set(_actions(self.engine).values()) == {"read", "no-op"}
        assert self.azure.calls_to("StorageAccounts.update") == []

    def test_plan_after_apply_is_empty(self):
        state = self._apply(config())
        changes = self.engine.plan(config(), state)
        assert {c.action for c in changes} == {"no-op"}

    def test_plan_does_not_touch_state_or_azure(self):
        from azprovider.engine import State
        state = State()
        changes = self.engine.plan(config(), state)
        assert [(c.address, c.action) for c in changes] == [
            ("azurerm_resource_group.test", "create"),
            ("azurerm_storage_account.test", "create"),
        ]
        assert len(state) == 0
        assert self.azure.resource_groups == {}

    def test_plan_defers_data_source_reading_unknown_values(self):
        from azprovider.engine import State
        from azprovider.parsers.terraform import parse_string
        blocks = parse_string(_CONFIG + """
data "azurerm_blueprint_definition" "test" {
  name     = "bp"
  scope_id = azurerm_resource_group.test.id
}
""", "main.tf")
        changes = self.engine.plan(blocks, State())
        actions = {c.address: c.action for c in changes}
        assert actions["azurerm_resource_group.test"] == "create"
        assert actions["data.azurerm_blueprint_definition.test"] == "read"
        assert self.azure.calls_to("Blueprints.get") == []

    def test_update_in_place(self):
        state = self._apply(config())
        self._apply(config(replication="GRS", env="prod"), state)
        assert _actions(self.engine)["azurerm_storage_account.test"] == "update"
        (args,) = self.azure.calls_to("StorageAccounts.update")
        assert args[2] == {"sku": {"name": "Standard_GRS"}, "tags": {"environment": "prod", "subscription": SUBSCRIPTION_ID}}
        account = state.get("azurerm_storage_account.test").instance
        assert account.attributes["account_replication_type"] == "GRS"
        assert account.attributes["secondary_location"] == "northeurope"

    def test_force_new_replaces(self):
        state = self._apply(config())
        self._apply(config(tier="Premium"), state)
        assert _actions(self.engine)["azurerm_storage_account.test"] == "replace"
        assert len(self.azure.calls_to("StorageAccounts.delete")) == 1
        assert len(self.azure.calls_to("StorageAccounts.begin_create")) == 2
        assert state.get("azurerm_storage_account.test").instance.attributes["account_tier"] == "Premium"

    def test_plan_reports_replace_and_update(self):
        state = self._apply(config())
        actions = {c.address: c.action for c in self.engine.plan(config(tier="Premium"), state)}
        assert actions["azurerm_storage_account.test"] == "replace"
        actions = {c.address: c.action for c in self.engine.plan(config(env="prod"), state)}
        assert actions["azurerm_storage_account.test"] == "update"
        assert self.azure.calls_to("StorageAccounts.update") == []

    def test_removed_block_is_deleted(self):
        state = self._apply(config())
        self._apply(config(account=False), state)
        assert _actions(self.engine)["azurerm_storage_account.test"] == "delete"
        assert state.get("azurerm_storage_account.test") is None
        assert self.azure.storage_accounts == {}

    def test_plan_reports_orphans(self):
        state = self._apply(config())
        changes = self.engine.plan(config(account=False), state)
        assert ("azurerm_storage_account.test", "delete") in [(c.address, c.action) for c in changes]

    def test_resource_deleted_outside_is_recreated(self):
        state = self._apply(config())
        self.azure.storage_accounts.clear()
        actions = {c.address: c.action for c in self.engine.plan(config(), state)}
        assert actions["azurerm_storage_account.test"] == "create"
        self._apply(config(), state)
        assert _actions(self.engine)["azurerm_storage_account.test"] == "create"
        assert len(self.azure.storage_accounts) == 1

    def test_remote_drift_is_reverted(self):
        state = self._apply(config())
        (body,) = self.azure.storage_accounts.values()
        body["tags"] = {}
        self._apply(config(), state)
        assert _actions(self.engine)["azurerm_storage_account.test"] == "update"
        assert body["tags"]["environment"] == "test"

    def test_refresh_drops_missing_resources(self):
        state = self._apply(config())
        self.azure.storage_accounts.clear()
        self.engine.refresh(state)
        assert state.get("azurerm_storage_account.test") is None
        assert state.get("azurerm_resource_group.test") is not None

    def test_destroy_runs_in_reverse(self):
        state = self._apply(config())
        self.engine.destroy(state)
        assert [c.address for c in self.engine.changes] == [
            "azurerm_storage_account.test",
            "azurerm_resource_group.test",
        ]
        assert len(state) == 0
        assert self.azure.resource_groups == {}

    def test_resource_group_with_resources_is_not_deleted(self):
        from azprovider.errors import ProviderError
        state = self._apply(config())
        self.azure.storage_client.storage_accounts.begin_create(
            "acctestRG-engine", "stray", {"location": "westeurope", "sku": {"name": "Standard_LRS"}}
        )
        with pytest.raises(ProviderError, match="the Resource Group still contains Resources"):
            self.engine.destroy(state)

    def test_validation_errors_stop_apply(self):
        from azprovider.errors import ConfigValidationError
        from azprovider.parsers.terraform import parse_string
        blocks = parse_string('resource "azurerm_resource_group" "test" {\n  name = "x"\n}\n')
        with pytest.raises(ConfigValidationError) as exc:
            self._apply(blocks)
        assert "location: The argument is required" in str(exc.value)
        assert self.azure.calls == []

    def test_bad_timeouts_block_stops_apply(self):
        from azprovider.errors import ConfigValidationError
        from azprovider.parsers.terraform import parse_string
        blocks = parse_string(
            'resource "azurerm_resource_group" "test" {\n'
            '  name     = "x"\n'
            '  location = "West Europe"\n'
            '  timeouts {\n'
            '    create = "ten minutes"\n'
            '  }\n'
            '}\n'
        )
        diags = self.engine.validate(blocks)
        assert [str(d) for d in diags] == ["timeouts.create: invalid duration 'ten minutes'"]
        with pytest.raises(ConfigValidationError):
            self._apply(blocks)
        assert self.azure.calls == []

    def test_valid_timeouts_block_applies(self):
        from azprovider.parsers.terraform import parse_string
        blocks = parse_string(
            'resource "azurerm_resource_group" "test" {\n'
            '  name     = "x"\n'
            '  location = "West Europe"\n'
            '  timeouts {\n'
            '    create = "10m"\n'
            '  }\n'
            '}\n'
        )
        assert self.engine.validate(blocks) == []
        state = self._apply(blocks)
        assert state.get("azurerm_resource_group.test").instance.id

    def test_unsupported_type(self):
        from azprovider.errors import ConfigValidationError
        from azprovider.parsers.terraform import parse_string
        blocks = parse_string('resource "azurerm_virtual_machine" "test" {\n  name = "x"\n}\n')
        with pytest.raises(ConfigValidationError, match="does not support resource type"):
            self._apply(blocks)

    def test_existing_resource_requires_import(self):
        from azprovider.errors import RequiresImportError
        self.azure.add_resource_group("acctestRG-engine")
        with pytest.raises(RequiresImportError) as exc:
            self._apply(config(account=False))
        assert exc.value.resource_id == f"/subscriptions/{SUBSCRIPTION_ID}/resourceGroups/acctestRG-engine"

    # ------------------------------------------------ import
    def test_import_matches_state(self):
        state = self._apply(config())
        imported = self.engine.import_resource("azurerm_storage_account", STORAGE_ID)
        assert imported.flatmap() == state.get("azurerm_storage_account.test").instance.flatmap()

    def test_import_missing(self):
        from azprovider.errors import ProviderError
        with pytest.raises(ProviderError, match="Cannot import non-existent remote object"):
            self.engine.import_resource("azurerm_storage_account", STORAGE_ID)

    def test_import_bad_id(self):
        from azprovider.errors import ResourceIdParseError
        with pytest.raises(ResourceIdParseError):
            self.engine.import_resource("azurerm_storage_account", f"/subscriptions/{SUBSCRIPTION_ID}")


# --------------------------------------------------------- configure
class TestConfigure:
    def setup_method(self):
        from azprovider.engine import Engine
        from azprovider.parsers.terraform import parse_string
        self.Engine = Engine
        self.parse = parse_string

    def test_provider_block_configures_client(self):
        blocks = self.parse('provider "azurerm" {\n  features {}\n  subscription_id = "from-block"\n}\n')
        client = self.Engine(environ={}).configure(blocks)
        assert client.subscription_id == "from-block"

    def test_environment_wins(self):
        blocks = self.parse('provider "azurerm" {\n  subscription_id = "from-block"\n}\n')
        client = self.Engine(environ={"ARM_SUBSCRIPTION_ID": "from-env"}).configure(blocks)
        assert client.subscription_id == "from-env"

    def test_given_client_is_kept(self):
        client = FakeAzure().client()
        assert self.Engine(client=client).configure([]) is client


# --------------------------------------------------------- state file
class TestStateFile:
    def setup_method(self):
        from azprovider import engine
        self.engine = engine

    def test_round_trip(self, tmp_path):
        state = self.engine.Engine(client=FakeAzure().client()).apply(config())
        path = str(tmp_path / "terraform.tfstate.json")
        self.engine.save_state(path, state)
        loaded = self.engine.load_state(path)
        assert loaded.to_dict() == state.to_dict()
        assert [e.address for e in loaded] == [e.address for e in state]

    def test_file_format(self, tmp_path):
        state = self.engine.Engine(client=FakeAzure().client()).apply(config(account=False))
        path = tmp_path / "state.json"
        self.engine.save_state(str(path), state)
        raw = json.loads(path.read_text())
        assert raw["version"] == 1
        assert {r["mode"] for r in raw["resources"]} == {"data", "managed"}

    def test_missing_file_is_empty(self, tmp_path):
        assert len(self.engine.load_state(str(tmp_path / "absent.json"))) == 0

    def test_unsupported_version(self, tmp_path):
        from azprovider.errors import ProviderError
        path = tmp_path / "state.json"
        path.write_text('{"version": 4, "resources": []}')
        with pytest.raises(ProviderError, match="unsupported state version"):
            self.engine.load_state(str(path))

    def test_other_json_is_not_state(self, tmp_path):
        from azprovider.errors import ProviderError
        path = tmp_path / "package.json"
        path.write_text('{"name": "x"}')
        with pytest.raises(ProviderError, match="expected a .json or .tfstate file"):
            self.engine.load_state(str(path))

    def test_corrupt_file(self, tmp_path):
        from azprovider.errors import ProviderError
        path = tmp_path / "state.json"
        path.write_text("{")
        with pytest.raises(ProviderError, match="reading state file"):
            self.engine.load_state(str(path))
