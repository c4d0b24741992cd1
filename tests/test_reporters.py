"""
Reporter tests: generated markdown documentation and the JSON reports.
"""
import json


# --------------------------------------------------------- markdown
class TestMarkdownDocs:
    def setup_method(self):
        from azprovider.provider import Provider
        from azprovider.reporters import markdown
        self.markdown = markdown
        self.provider = Provider()

    def _docs(self, resource_type):
        resource = self.provider.resources.get(resource_type) or self.provider.data_sources[resource_type]
        return self.markdown.build_docs(resource_type, resource)

    def test_managed_application_page(self):
        page = self._docs("azurerm_managed_application")
        assert 'subcategory: "Managed Applications"' in page
        assert "# azurerm_managed_application\n" in page
        assert "* `kind` - (Required) The kind. Changing this forces a new resource to be created." in page
        assert "Conflicts with `parameter_values`." in page
        assert "A `plan` block supports the following:" in page
        assert "* `outputs` - The outputs." in page
        assert "* `create` - (Defaults to 30 minutes) Used when creating the Managed Application." in page
        assert (
            "terraform import azurerm_managed_application.example "
            "/subscriptions/12345678-1234-9876-4563-123456789012/resourceGroups/resourceGroup1"
            "/providers/Microsoft.Solutions/applications/application1"
        ) in page

    def test_defaults_and_sensitive_attributes(self):
        page = self._docs("azurerm_storage_account")
        assert "Defaults to `Hot`." in page
        assert "Defaults to `true`." in page
        assert "* `primary_access_key` - The primary access key. This value is sensitive." in page
        assert "(Defaults to 1 hour) Used when deleting the Storage Account." in page

    def test_nested_blocks_are_documented(self):
        page = self._docs("azurerm_storage_management_policy")
        for block in ("rule", "filters", "actions", "base_blob", "snapshot"):
            assert f"A `{block}` block supports the following:" in page
        assert "Defaults to `-1`." in page

    def test_data_source_page(self):
        page = self._docs("azurerm_blueprint_definition")
        assert "# Data Source: azurerm_blueprint_definition" in page
        assert 'subcategory: "Blueprints"' in page
        assert "(Defaults to 5 minutes) Used when retrieving the Blueprint Definition." in page
        assert "Used when creating" not in page
        assert "## Import" not in page

    def test_humanize(self):
        assert self.markdown._humanize(None) == "no timeout"
        assert self.markdown._humanize(60) == "1 minute"
        assert self.markdown._humanize(5400) == "90 minutes"
        assert self.markdown._humanize(7200) == "2 hours"

    def test_example_ids(self):
        from azprovider.services.blueprints.ids import BlueprintDefinitionId
        from azprovider.services.storage.resourceids import StorageAccountId
        assert self.markdown.example_id(StorageAccountId) == (
            "/subscriptions/12345678-1234-9876-4563-123456789012/resourceGroups/resourceGroup1"
            "/providers/Microsoft.Storage/storageAccounts/storageAccount1"
        )
        assert self.markdown.example_id(BlueprintDefinitionId) == (
            "/subscriptions/12345678-1234-9876-4563-123456789012/providers/Microsoft.Blueprint/blueprints/blueprint1"
        )
        assert self.markdown.example_id(None) == ""


# --------------------------------------------------------- json
class TestJsonReporter:
    def setup_method(self):
        from azprovider.reporters import json_reporter
        self.reporter = json_reporter

    def test_schema_to_dict(self):
        from azprovider.models.schema import FieldType, Schema
        s = Schema(FieldType.LIST, optional=True, max_items=1, elem={
            "name": Schema(FieldType.STRING, required=True, force_new=True),
            "tags": Schema(FieldType.MAP, optional=True, elem=Schema(FieldType.STRING)),
        })
        assert self.reporter.schema_to_dict(s) == {
            "type": "list",
            "optional": True,
            "max_items": 1,
            "block": {
                "name": {"type": "string", "required": True, "force_new": True},
                "tags": {"type": "map", "optional": True, "elem": {"type": "string"}},
            },
        }

    def test_validation_report(self):
        from azprovider.models.resource import ConfigBlock
        from azprovider.models.schema import Diagnostic, DiagnosticSeverity
        block = ConfigBlock(
            mode="managed",
            resource_type="azurerm_resource_group",
            name="example",
            source_file="main.tf",
            properties={"name": "rg"},
        )
        warning = Diagnostic(DiagnosticSeverity.WARNING, "deprecated", attribute="x", address=block.address)
        report = json.loads(self.reporter.build_validation_report([block], [warning], "main.tf"))
        assert report["valid"] is True
        assert report["meta"]["source"] == "main.tf"
        assert report["blocks"] == [
            {"address": "azurerm_resource_group.example", "source_file": "main.tf", "relationships": []}
        ]
        assert report["diagnostics"][0]["severity"] == "WARNING"

    def test_changes_report(self):
        from azprovider.engine import Change
        changes = [Change("azurerm_resource_group.example", "create", "/subscriptions/s/resourceGroups/rg")]
        report = json.loads(self.reporter.build_changes_report(changes))
        assert report["changes"] == [
            {"address": "azurerm_resource_group.example", "action": "create", "id": "/subscriptions/s/resourceGroups/rg"}
        ]
        assert "state" not in report
