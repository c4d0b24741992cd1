"""
Schema tests: static validation of configuration, ResourceData reads and
writes, the flattened state form, validators and timeouts.
"""
import pytest


# --------------------------------------------------------- validate_config
class TestValidateConfig:
    def setup_method(self):
        from azprovider.models import schema
        self.schema = schema
        S, T = schema.Schema, schema.FieldType
        self.fields = {
            "name": S(T.STRING, required=True),
            "count": S(T.INT, optional=True),
            "enabled": S(T.BOOL, optional=True),
            "tags": S(T.MAP, optional=True, elem=S(T.STRING)),
            "left": S(T.STRING, optional=True, conflicts_with=["right"]),
            "right": S(T.STRING, optional=True, conflicts_with=["left"]),
            "ui": S(T.STRING, optional=True, required_with=["template"]),
            "template": S(T.STRING, optional=True, required_with=["ui"]),
            "computed_id": S(T.STRING, computed=True),
            "plan": S(T.LIST, optional=True, max_items=1, elem={
                "name": S(T.STRING, required=True),
                "size": S(T.INT, optional=True, default=1),
            }),
        }

    def _errors(self, config):
        return [str(d) for d in self.schema.validate_config(self.fields, config)]

    def test_valid_config(self):
        assert self._errors({"name": "a", "count": 2, "enabled": True, "tags": {"env": "test"}}) == []

    def test_missing_required(self):
        assert self._errors({}) == ["name: The argument is required, but no definition was found."]

    def test_unexpected_argument(self):
        assert self._errors({"name": "a", "colour": "red"}) == [
            "colour: An argument named 'colour' is not expected here."
        ]

    def test_conflicts_reported_on_both_sides(self):
        errors = self._errors({"name": "a", "left": "x", "right": "y"})
        assert "left: conflicts with right" in errors
        assert "right: conflicts with left" in errors

    def test_required_with(self):
        assert self._errors({"name": "a", "ui": "{}"}) == ["ui: all of `ui,template` must be specified"]

    def test_computed_only_cannot_be_set(self):
        errors = self._errors({"name": "a", "computed_id": "x"})
        assert errors == ["computed_id: Can't configure a value for a computed-only attribute."]

    def test_wrong_scalar_type(self):
        assert self._errors({"name": "a", "count": "many"}) == [
            "count: Inappropriate value for attribute: int required."
        ]

    def test_numeric_strings_coerce(self):
        assert self._errors({"name": "a", "count": "3", "enabled": "true"}) == []

    def test_max_items(self):
        errors = self._errors({"name": "a", "plan": [{"name": "x"}, {"name": "y"}]})
        assert errors == ["plan: No more than 1 item(s) are allowed, got 2."]

    def test_nested_block_paths(self):
        errors = self._errors({"name": "a", "plan": [{"size": 2}]})
        assert errors == ["plan.0.name: The argument is required, but no definition was found."]

    def test_interpolations_are_not_checked(self):
        assert self._errors({"name": "${azurerm_resource_group.test.name}", "count": "${x.y.z}"}) == []

    def test_resource_validate_sets_address_and_accepts_timeouts(self):
        resource = self.schema.Resource(schema=self.fields, read=lambda d, m: None, create=lambda d, m: None)
        diags = resource.validate({"timeouts": {"create": "5m"}}, "azurerm_thing.test")
        assert len(diags) == 1
        assert diags[0].address == "azurerm_thing.test"
        assert diags[0].to_dict()["severity"] == "ERROR"

    def test_bad_timeout_duration(self):
        resource = self.schema.Resource(schema=self.fields, read=lambda d, m: None, create=lambda d, m: None)
        diags = resource.validate({"name": "a", "timeouts": [{"create": "ten minutes"}]})
        assert [d.attribute for d in diags] == ["timeouts.create"]
        assert "invalid duration 'ten minutes'" in diags[0].summary

    def test_unsupported_timeout_operation(self):
        resource = self.schema.Resource(schema=self.fields, read=lambda d, m: None, create=lambda d, m: None)
        diags = resource.validate({"name": "a", "timeouts": {"restart": "5m"}})
        assert [d.attribute for d in diags] == ["timeouts.restart"]

    def test_data_source_timeouts_are_read_only(self):
        data_source = self.schema.Resource(schema=self.fields, read=lambda d, m: None)
        assert data_source.validate({"name": "a", "timeouts": {"read": "5m"}}) == []
        diags = data_source.validate({"name": "a", "timeouts": {"create": "5m"}})
        assert [d.attribute for d in diags] == ["timeouts.create"]


# --------------------------------------------------------- ResourceData
class TestResourceData:
    def setup_method(self):
        from azprovider.models.schema import FieldType, Schema
        from azprovider.models.state import InstanceState, ResourceData
        self.ResourceData = ResourceData
        self.InstanceState = InstanceState
        self.fields = {
            "name": Schema(FieldType.STRING, required=True),
            "tier": Schema(FieldType.STRING, optional=True, default="Hot"),
            "values": Schema(FieldType.STRING, optional=True, computed=True),
            "enabled": Schema(FieldType.BOOL, optional=True),
            "plan": Schema(FieldType.LIST, optional=True, elem={
                "name": Schema(FieldType.STRING, required=True),
                "code": Schema(FieldType.STRING, optional=True),
            }),
        }

    def test_new_resource_reads_config_and_defaults(self):
        d = self.ResourceData(self.fields, config={"name": "a"})
        assert d.is_new_resource()
        assert d.get("name") == "a"
        assert d.get("tier") == "Hot"
        assert d.get("enabled") is False
        assert d.state() is None

    def test_config_values_are_coerced(self):
        d = self.ResourceData(self.fields, config={"name": 5, "enabled": "true"})
        assert d.get("name") == "5"
        assert d.get("enabled") is True

    def test_nested_blocks_get_zero_values(self):
        d = self.ResourceData(self.fields, config={"name": "a", "plan": {"name": "p"}})
        assert d.get("plan") == [{"name": "p", "code": ""}]
        assert d.get("plan.0.name") == "p"
        assert d.get("plan.3.name") is None

    def test_computed_keeps_prior_state_when_not_configured(self):
        prior = self.InstanceState(id="x", attributes={"name": "a", "values": "{}"})
        d = self.ResourceData(self.fields, state=prior, config={"name": "a"})
        assert d.get("values") == "{}"
        assert not d.is_new_resource()

    def test_optional_not_computed_falls_back_to_default(self):
        prior = self.InstanceState(id="x", attributes={"name": "a", "tier": "Cool"})
        d = self.ResourceData(self.fields, state=prior, config={"name": "a"})
        assert d.get("tier") == "Hot"
        assert d.has_change("tier")
        assert d.get_change("tier") == ("Cool", "Hot")

    def test_set_wins_and_state_includes_every_key(self):
        d = self.ResourceData(self.fields, config={"name": "a"})
        d.set_id("/some/id")
        d.set("values", None)
        state = d.state()
        assert state.id == "/some/id"
        assert set(state.attributes) == set(self.fields)
        assert state.attributes["values"] == ""

    def test_clearing_id_drops_state(self):
        d = self.ResourceData(self.fields, state=self.InstanceState(id="x"))
        d.set_id("")
        assert d.state() is None

    def test_unknown_key(self):
        d = self.ResourceData(self.fields)
        with pytest.raises(KeyError):
            d.get("colour")

    def test_get_ok(self):
        d = self.ResourceData(self.fields, config={"name": "a"})
        assert d.get_ok("name") == ("a", True)
        assert d.get_ok("values") == ("", False)
        assert d.in_config("name")
        assert not d.in_config("values")

    def test_timeouts_block_overrides(self):
        d = self.ResourceData(self.fields, config={"name": "a", "timeouts": [{"create": "1h30m"}]})
        assert d.timeout("create") == 5400
        assert d.timeout("read") == 300


# --------------------------------------------------------- flatmap
class TestFlatmap:
    def setup_method(self):
        from azprovider.models.state import InstanceState
        self.InstanceState = InstanceState

    def test_flattened_keys(self):
        state = self.InstanceState(id="x", attributes={
            "tags": {"env": "test", "team": "a"},
            "versions": ["v1", "v2"],
            "plan": [{"name": "p", "enabled": True}],
            "count": 3,
            "unset": None,
        })
        flat = state.flatmap()
        assert flat["id"] == "x"
        assert flat["tags.%"] == "2"
        assert flat["tags.env"] == "test"
        assert flat["versions.#"] == "2"
        assert flat["versions.1"] == "v2"
        assert flat["plan.#"] == "1"
        assert flat["plan.0.name"] == "p"
        assert flat["plan.0.enabled"] == "true"
        assert flat["count"] == "3"
        assert "unset" not in flat
        assert "plan.0.%" not in flat


# --------------------------------------------------------- validators
class TestValidators:
    def setup_method(self):
        from azprovider import validation
        self.v = validation

    def test_string_is_not_empty(self):
        assert self.v.string_is_not_empty("x", "k") == []
        assert self.v.string_is_not_empty("  ", "k")
        assert self.v.string_is_not_empty(1, "k")

    def test_string_in_slice(self):
        fn = self.v.string_in_slice(["Hot", "Cool"])
        assert fn("Hot", "k") == []
        assert fn("hot", "k") == ["expected k to be one of ['Hot', 'Cool'], got hot"]
        assert self.v.string_in_slice(["Hot"], ignore_case=True)("hot", "k") == []

    def test_string_is_json(self):
        assert self.v.string_is_json('{"a": 1}', "k") == []
        assert self.v.string_is_json("", "k")
        assert "invalid JSON" in self.v.string_is_json("{", "k")[0]

    def test_is_uuid(self):
        assert self.v.is_uuid("b24988ac-6180-42a0-ab88-20f7382dd24c", "k") == []
        assert self.v.is_uuid("not-a-uuid", "k")

    def test_int_between(self):
        assert self.v.int_between(1, 3)(2, "k") == []
        assert self.v.int_between(1, 3)(4, "k")
        assert self.v.int_between(0, 1)(True, "k")

    def test_https_url(self):
        assert self.v.is_url_with_https("https://example.com/app.zip", "k") == []
        assert self.v.is_url_with_https("http://example.com", "k")

    def test_any_of_and_all_of(self):
        either = self.v.any_of(self.v.is_uuid, self.v.string_in_slice(["none"]))
        assert either("none", "k") == []
        assert len(either("x", "k")) == 2
        both = self.v.all_of(self.v.string_is_not_empty, self.v.string_length_between(1, 2))
        assert len(both("abc", "k")) == 1


# --------------------------------------------------------- timeouts
class TestTimeouts:
    def setup_method(self):
        from azprovider import timeouts
        self.t = timeouts

    @pytest.mark.parametrize("raw,seconds", [("30m", 1800), ("1h30m", 5400), ("90s", 90), ("1.5h", 5400)])
    def test_parse_duration(self, raw, seconds):
        assert self.t.parse_duration(raw) == seconds

    @pytest.mark.parametrize("raw", ["", "30", "5 minutes", "1h 30m"])
    def test_parse_duration_rejects(self, raw):
        with pytest.raises(ValueError):
            self.t.parse_duration(raw)

    def test_unknown_operation(self):
        from azprovider.errors import ProviderError
        with pytest.raises(ProviderError, match="unsupported timeout"):
            self.t.Timeouts().with_overrides({"restart": "5m"})

    def test_deadline_counts_down(self):
        now = [100.0]
        deadline = self.t.Deadline(10, clock=lambda: now[0])
        assert deadline.remaining() == 10
        now[0] = 115.0
        assert deadline.remaining() == 0
        assert deadline.expired
        assert self.t.Deadline(None).remaining() is None

    def test_wait_for_raises_when_poller_not_done(self):
        from azure_fakes import FakePoller
        from azprovider.errors import OperationTimeoutError
        poller = FakePoller("result", finished=False)
        with pytest.raises(OperationTimeoutError, match="timed out waiting for creation"):
            self.t.wait_for(poller, self.t.Deadline(60), "creation")
        assert poller.timeouts and 0 < poller.timeouts[0] <= 60

    def test_wait_for_returns_result(self):
        from azure_fakes import FakePoller
        assert self.t.wait_for(FakePoller("done"), self.t.Deadline(None), "x") == "done"
