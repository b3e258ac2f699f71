import sys
import json
import argparse
from typing import Optional, List
import structlog

from . import config
from .exceptions import PredicateNotSatisfied, ZkCredentialError
from .issuer import CredentialIssuer
from .key_registry import KeyRegistry
from .utils import configure_logging
from .verifier import CredentialVerifier
from .wallet import Wallet
from .zk_backend import SimulatedBackend
from .zk_circuit import PredicateCircuit

# Initialize structured logger
logger = structlog.get_logger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_PREDICATE_FALSE = 2


class ZkAgeCredentialCLI:
    """Command-line interface for issuing and verifying age credentials."""

    def __init__(self) -> None:
        self.parser = self._create_argument_parser()

    def _create_argument_parser(self) -> argparse.ArgumentParser:
        """Creates the argument parser for the CLI."""
        parser = argparse.ArgumentParser(
            prog="zk-age-credential",
            description="ZK Age Credential - privacy-preserving age eligibility credentials",
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )

        subparsers = parser.add_subparsers(dest="command", required=True)
        self._add_demo_command(subparsers)
        subparsers.add_parser(
            "circuit", help="Print the compiled age predicate circuit summary."
        )

        return parser

    def _add_demo_command(self, subparsers) -> None:
        """Add the 'demo' command and its arguments."""
        demo_parser = subparsers.add_parser(
            "demo",
            help="Issue a credential for a sample subject, store it and verify it.",
        )
        demo_parser.add_argument("--birth-date", default="1984-01-01", help="YYYY-MM-DD")
        demo_parser.add_argument("--subject-id", default="did:example:user123")
        demo_parser.add_argument("--given-name", default="Adrien")
        demo_parser.add_argument("--family-name", default="Smith")
        demo_parser.add_argument("--nationality", default="FR")

    def _execute_demo_command(self, args: argparse.Namespace) -> int:
        """Run the issue -> store -> verify flow once."""
        subject = {
            "id": args.subject_id,
            "givenName": args.given_name,
            "familyName": args.family_name,
            "birthDate": args.birth_date,
            "nationality": args.nationality,
        }

        try:
            registry = KeyRegistry(SimulatedBackend())
            registry.initialize(PredicateCircuit())

            issuer = CredentialIssuer(registry)
            verifier = CredentialVerifier(registry)
            wallet = Wallet(owner=args.subject_id)

            credential = issuer.issue(subject)
            wallet.append(credential)
            result = verifier.verify(credential)

        except PredicateNotSatisfied as e:
            print(f"\n[REJECTED] {e.message}", file=sys.stderr)
            return EXIT_PREDICATE_FALSE
        except ZkCredentialError as e:
            print(f"\n[ERROR] {e}", file=sys.stderr)
            return EXIT_ERROR

        logger.info(
            "Demo completed",
            credential_id=credential.id,
            wallet_size=len(wallet),
            valid=result.valid,
        )

        print(credential.to_json(indent=2))
        print(json.dumps({"verification": result.to_dict()}, indent=2))
        print("Credential is valid." if result else "Credential is not valid.")
        return EXIT_OK if result else EXIT_ERROR

    def _execute_circuit_command(self) -> int:
        try:
            compiled = SimulatedBackend().compile(PredicateCircuit())
        except ZkCredentialError as e:
            print(f"\n[ERROR] {e}", file=sys.stderr)
            return EXIT_ERROR

        print(json.dumps(compiled.summary(), indent=2))
        return EXIT_OK

    def run_from_args(self, args_list: Optional[List[str]] = None) -> int:
        """Run the CLI with provided arguments."""
        try:
            args = self.parser.parse_args(args_list)
            if args.command == "demo":
                return self._execute_demo_command(args)
            if args.command == "circuit":
                return self._execute_circuit_command()
            self.parser.print_help()
            return EXIT_ERROR
        except KeyboardInterrupt:
            print("\nOperation cancelled by user.", file=sys.stderr)
            return 130


def main() -> int:
    """Main entry point for the CLI."""
    configure_logging(config.LOG_LEVEL, config.STRUCTURED_LOGGING)
    cli = ZkAgeCredentialCLI()
    return cli.run_from_args()


if __name__ == "__main__":
    sys.exit(main())
