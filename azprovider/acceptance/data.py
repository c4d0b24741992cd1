"""
Per-test data: random suffixes that keep parallel runs from colliding, the
locations to deploy into, and the address of the resource under test.
"""
import os
import random
import string
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional

from jinja2 import Environment, StrictUndefined

from azprovider.acceptance.runner import TestStep, run

_env = Environment(autoescape=False, keep_trailing_newline=True, undefined=StrictUndefined)

REQUIRES_IMPORT_ERROR = r"to be managed via Terraform this resource needs to be imported into the State"


def random_integer() -> int:
    """Time based so that leftovers from earlier runs sort by age: yymmddHHMMSS + 5 random digits."""
    now = datetime.now(timezone.utc)
    return int(f"{now:%y%m%d%H%M%S}{random.randint(0, 99999):05d}")


def random_string(length: int = 5) -> str:
    return "".join(random.choice(string.ascii_lowercase + string.digits) for _ in range(length))


@dataclass
class Locations:
    primary: str
    secondary: str
    ternary: str


@dataclass
class TestData:
    resource_type: str
    resource_label: str
    random_integer: int = field(default_factory=random_integer)
    random_string: str = field(default_factory=random_string)
    locations: Locations = field(default_factory=lambda: _locations())

    # keeps pytest from collecting this class
    __test__ = False

    @property
    def resource_name(self) -> str:
        return f"{self.resource_type}.{self.resource_label}"

    def render(self, source: str, **values: Any) -> str:
        """Render a jinja2 configuration template with ``data`` bound to this object."""
        return _env.from_string(source).render(data=self, **values)

    # ------------------------------------------------ steps
    def import_step(self, *ignore: str) -> TestStep:
        return TestStep(
            resource_name=self.resource_name,
            import_state=True,
            import_state_verify=True,
            import_state_verify_ignore=list(ignore),
        )

    def requires_import_error_step(self, config_fn: Callable[["TestData"], str]) -> TestStep:
        return TestStep(config=config_fn(self), expect_error=REQUIRES_IMPORT_ERROR)

    # ------------------------------------------------ runners
    def resource_test(self, test_resource: Any, steps: List[TestStep], client: Optional[Any] = None) -> None:
        run(self, test_resource, steps, client=client)

    def resource_sequential_test(self, test_resource: Any, steps: List[TestStep],
                                 client: Optional[Any] = None) -> None:
        run(self, test_resource, steps, client=client, sequential=True)


def _locations() -> Locations:
    return Locations(
        primary=os.environ.get("ARM_TEST_LOCATION", "westeurope"),
        secondary=os.environ.get("ARM_TEST_LOCATION_ALT", "northeurope"),
        ternary=os.environ.get("ARM_TEST_LOCATION_ALT2", "eastus2"),
    )


def build_test_data(resource_type: str, resource_label: str) -> TestData:
    return TestData(resource_type=resource_type, resource_label=resource_label)
