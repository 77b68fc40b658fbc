import typing
from typing import Any, List

from ape import project
from ape.api import AccountAPI
from ape.cli.choices import select_account
from ape.contracts.base import ContractContainer
from ape.exceptions import ApeException
from eth_typing import ChecksumAddress

from olas_deployment.confirm import _confirm_arguments, _continue
from olas_deployment.errors import DeploymentFailed
from olas_deployment.graph import DeploymentBackend


def _get_dependency_contract_container(contract: str) -> ContractContainer:
    for dependency_name, dependency_versions in project.dependencies.items():
        if len(dependency_versions) > 1:
            raise ValueError(f"Ambiguous {dependency_name} dependency for {contract}")
        try:
            dependency_api = list(dependency_versions.values())[0]
            contract_container = getattr(dependency_api, contract)
            return contract_container
        except AttributeError:
            continue
    raise ValueError(f"No contract found with name '{contract}'.")


def get_contract_container(contract: str) -> ContractContainer:
    try:
        contract_container = getattr(project, contract)
    except AttributeError:
        # not in root project; check dependencies
        contract_container = _get_dependency_contract_container(contract)

    return contract_container


class ApeBackend(DeploymentBackend):
    """
    Deploys and transacts through an ape account on the connected network.
    Unless autosign is enabled every deployment and transaction is confirmed
    interactively.
    """

    def __init__(
        self,
        account: typing.Optional[AccountAPI] = None,
        autosign: bool = False,
        publish: bool = False,
    ):
        if account is None:
            self._account = select_account()
        else:
            self._account = account
        if autosign:
            print("WARNING: Autosign is enabled. Transactions will be signed automatically.")
        self._autosign = autosign
        self._account.set_autosign(autosign)
        self.publish = publish

    def get_account(self) -> AccountAPI:
        """Returns the deployer account."""
        return self._account

    def get_address(self) -> ChecksumAddress:
        return self._account.address

    def deploy(self, contract_name: str, constructor_args: List[Any]) -> ChecksumAddress:
        container = get_contract_container(contract_name)
        if not self._autosign:
            _confirm_arguments(constructor_args, contract_name)
        try:
            instance = self._account.deploy(
                container,
                *constructor_args,
                publish=self.publish,
            )
        except ApeException as e:
            raise DeploymentFailed(contract_name, e) from e
        return instance.address

    def transact(
        self, contract_name: str, address: ChecksumAddress, method: str, args: List[Any]
    ) -> Any:
        contract = get_contract_container(contract_name).at(address)
        method_handler = getattr(contract, method)
        if not self._autosign:
            _continue()
        try:
            return method_handler(*args, sender=self._account)
        except ApeException as e:
            raise DeploymentFailed(f"{contract_name}.{method}", e) from e
