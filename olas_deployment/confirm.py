from typing import Any, List

from olas_deployment.constants import ZERO_ADDRESS


def _confirm_deployment(contract_name: str) -> None:
    """Asks the user to confirm the deployment of a single contract."""
    answer = input(f"Deploy {contract_name} Y/N? ")
    if answer.lower().strip() == "n":
        print("Aborting deployment!")
        exit(-1)


def _continue() -> None:
    """Asks the user to continue."""
    answer = input("Continue Y/N? ")
    if answer.lower().strip() == "n":
        print("Aborting deployment!")
        exit(-1)


def _confirm_zero_address() -> None:
    answer = input("Zero Address detected for deployment parameter; Continue? Y/N? ")
    if answer.lower().strip() == "n":
        print("Aborting deployment!")
        exit(-1)


def _contains_zero_address(value: Any) -> bool:
    if isinstance(value, (list, tuple)):
        return any(_contains_zero_address(v) for v in value)
    return isinstance(value, str) and value.lower() == ZERO_ADDRESS


def _confirm_arguments(constructor_args: List[Any], contract_name: str) -> None:
    """Asks the user to confirm the resolved constructor arguments for a single contract."""
    if len(constructor_args) == 0:
        print(f"\n(i) No constructor parameters for {contract_name}")
    _confirm_deployment(contract_name)
    if _contains_zero_address(constructor_args):
        _confirm_zero_address()
