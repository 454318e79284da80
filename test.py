import unittest
from contracting.stdlib.bridge.decimal import ContractingDecimal as decimal
from contracting.stdlib.bridge.time import Datetime, Timedelta
from contracting.client import ContractingClient
from pathlib import Path


class TestPresaleFactoryContract(unittest.TestCase):
    def setUp(self):
        self.client = ContractingClient()
        self.client.flush() # Ensures a clean state

        # Define user accounts
        self.operator = 'sys' # Submits the factory and owns the platform factory
        self.alice = 'alice' # Presale owner, operates the sale token
        self.bob = 'bob'
        self.charlie = 'charlie'

        # Define contract names for easy reference
        self.factory_contract_name = "con_presale_factory"
        self.sale_token_name = "con_sale_token"
        self.payment_token_name = "con_payment_token"
        self.native_token_name = "currency"

        contracts_dir = Path(__file__).resolve().parent

        with open(contracts_dir / "con_presale_factory.py") as f:
            self.client.submit(f.read(), name=self.factory_contract_name, signer=self.operator)

        with open(contracts_dir / "con_mintable_token.py") as f:
            token_code = f.read()

        # The same mintable token code backs the native asset, the payment token and the sale token
        self.client.submit(token_code, name=self.native_token_name, signer=self.operator)
        self.client.submit(token_code, name=self.payment_token_name, signer=self.operator)
        self.client.submit(token_code, name=self.sale_token_name, signer=self.alice)

        self.factory = self.client.get_contract(self.factory_contract_name)
        self.currency = self.client.get_contract(self.native_token_name)
        self.payment_token = self.client.get_contract(self.payment_token_name)
        self.sale_token = self.client.get_contract(self.sale_token_name)

        # --- Token Distribution ---
        for buyer in (self.bob, self.charlie):
            self.payment_token.mint(amount=decimal('2000000'), to=buyer, signer=self.operator)
            self.currency.mint(amount=decimal('2000000'), to=buyer, signer=self.operator)

        # --- Approvals ---
        # Buyers let the factory pull their payment
        for buyer in (self.bob, self.charlie):
            self.payment_token.approve(amount=decimal('2000000'), to=self.factory_contract_name, signer=buyer)
            self.currency.approve(amount=decimal('2000000'), to=self.factory_contract_name, signer=buyer)

        # Alice lets the factory mint the hard cap of her sale token into its vault
        self.sale_token.set_minter(account=self.factory_contract_name, enabled=True, signer=self.alice)

        # Platform factory with a 5% fee
        self.factory.initialize_factory(platform_fee=500, signer=self.operator)

        # Base time for controlling "now" in tests
        self.base_time = Datetime(year=2024, month=1, day=1, hour=0, minute=0, second=0)
        self.start_sale = self._get_future_time(self.base_time, days=1)
        self.end_sale = self._get_future_time(self.base_time, days=10)
        self.sale_time = self._get_future_time(self.base_time, days=2)

    def tearDown(self):
        self.client.flush()

    def _get_future_time(self, base_dt: Datetime, days=0, hours=0, minutes=0, seconds=0) -> Datetime:
        delta = Timedelta(days=days, hours=hours, minutes=minutes, seconds=seconds)
        return base_dt + delta

    def _create_presale(self, **overrides):
        params = {
            "factory_id": self.operator,
            "owner": self.alice,
            "token": self.sale_token_name,
            "payment_token": self.payment_token_name,
            "presale_rate": decimal('10'),
            "soft_cap": decimal('500000'),
            "hard_cap": decimal('1000000'),
            "min_buy": decimal('100'),
            "max_buy": decimal('10000'),
            "start_sale": self.start_sale,
            "end_sale": self.end_sale,
            "is_native": False,
            "is_whitelist": False,
            "signer": self.operator,
        }
        params.update(overrides)
        return self.factory.create_presale(**params)

    def test_initialize_factory(self):
        print("\n--- Test: Initialize Factory ---")
        factory_info = self.factory.factories[self.operator]
        self.assertEqual(factory_info['owner'], self.operator)
        self.assertEqual(factory_info['presale_count'], 0)
        self.assertEqual(factory_info['platform_fee'], 500)

    def test_create_presale(self):
        print("\n--- Test: Create Presale ---")
        presale_id = self._create_presale(launch_config={"dex_router": "con_dex_router", "listing_rate": 8})
        self.assertIsNotNone(presale_id, "Presale creation failed to return an ID.")
        print(f"Presale created for Alice with ID: {presale_id}")

        presale = self.factory.presales[presale_id]
        self.assertEqual(presale['owner'], self.alice)
        self.assertEqual(presale['token'], self.sale_token_name)
        self.assertEqual(presale['payment_token'], self.payment_token_name)
        self.assertEqual(presale['payment_mode'], "token")
        self.assertEqual(presale['presale_rate'], decimal('10'))
        self.assertEqual(presale['soft_cap'], decimal('500000'))
        self.assertEqual(presale['hard_cap'], decimal('1000000'))
        self.assertEqual(presale['min_buy'], decimal('100'))
        self.assertEqual(presale['max_buy'], decimal('10000'))
        self.assertEqual(presale['start_sale'], self.start_sale)
        self.assertEqual(presale['end_sale'], self.end_sale)
        self.assertEqual(presale['platform_fee'], decimal('50000'))
        self.assertEqual(presale['tokens_sold'], decimal('0'))
        self.assertEqual(presale['funds_raised'], decimal('0'))
        self.assertFalse(presale['is_finalized'])

        launch_config = presale['launch_config']
        self.assertEqual(launch_config['dex_router'], "con_dex_router")
        self.assertEqual(launch_config['listing_rate'], 8)
        self.assertEqual(launch_config['liquidity_percent'], 0)
        self.assertFalse(launch_config['is_vesting'])

        self.assertEqual(self.factory.factories[self.operator]['presale_count'], 1)

        # Hard cap is minted into the factory's token vault
        self.assertEqual(self.sale_token.balance_of(address=self.factory_contract_name), decimal('1000000'))
        self.assertEqual(self.sale_token.metadata['total_supply'], decimal('1000000'))

    def test_presale_ids_are_unique_per_creation(self):
        print("\n--- Test: Presale IDs Are Unique ---")
        first_id = self._create_presale()
        second_id = self._create_presale()
        self.assertNotEqual(first_id, second_id)
        self.assertEqual(self.factory.factories[self.operator]['presale_count'], 2)
        self.assertEqual(self.sale_token.balance_of(address=self.factory_contract_name), decimal('2000000'))

    def test_create_presale_soft_cap_above_hard_cap(self):
        print("\n--- Test: Soft Cap Above Hard Cap ---")
        with self.assertRaisesRegex(AssertionError, "InvalidCap"):
            self._create_presale(soft_cap=decimal('600000'), hard_cap=decimal('500000'))
        self.assertEqual(self.factory.factories[self.operator]['presale_count'], 0)
        self.assertEqual(self.sale_token.balance_of(address=self.factory_contract_name), decimal('0'))

    def test_create_presale_invalid_time_and_bounds(self):
        print("\n--- Test: Invalid Sale Window And Buy Bounds ---")
        with self.assertRaisesRegex(AssertionError, "InvalidTime"):
            self._create_presale(start_sale=self.end_sale, end_sale=self.start_sale)
        with self.assertRaisesRegex(AssertionError, "InvalidTime"):
            self._create_presale(start_sale=self.start_sale, end_sale=self.start_sale)
        with self.assertRaisesRegex(AssertionError, "InvalidMinMax"):
            self._create_presale(min_buy=decimal('500'), max_buy=decimal('100'))
        self.assertEqual(self.factory.factories[self.operator]['presale_count'], 0)

    def test_create_presale_boundaries_accepted(self):
        print("\n--- Test: Equal Caps And Equal Bounds Are Accepted ---")
        presale_id = self._create_presale(
            soft_cap=decimal('1000000'), min_buy=decimal('500'), max_buy=decimal('500')
        )
        presale = self.factory.presales[presale_id]
        self.assertEqual(presale['soft_cap'], presale['hard_cap'])
        self.assertEqual(presale['min_buy'], presale['max_buy'])

    def test_buy_tokens(self):
        print("\n--- Test: Buy Tokens ---")
        presale_id = self._create_presale()
        bob_payment_before = self.payment_token.balance_of(address=self.bob)

        result = self.factory.buy_tokens(
            presale_id=presale_id, amount=decimal('1000'), signer=self.bob,
            environment={"now": self.sale_time}
        )
        self.assertEqual(result['tokens_purchased'], decimal('100'))

        presale = self.factory.presales[presale_id]
        self.assertEqual(presale['funds_raised'], decimal('1000'))
        self.assertEqual(presale['tokens_sold'], decimal('100'))

        # Payment leg and token leg both settled
        self.assertEqual(self.payment_token.balance_of(address=self.bob), bob_payment_before - decimal('1000'))
        self.assertEqual(self.payment_token.balance_of(address=self.factory_contract_name), decimal('1000'))
        self.assertEqual(self.sale_token.balance_of(address=self.bob), decimal('100'))
        self.assertEqual(self.sale_token.balance_of(address=self.factory_contract_name), decimal('999900'))

        bob_record = self.factory.buyers[presale_id, self.bob]
        self.assertEqual(bob_record['amount'], decimal('1000'))
        self.assertEqual(bob_record['tokens'], decimal('100'))
        print(f"Bob bought {result['tokens_purchased']} tokens in presale {presale_id}")

    def test_buy_tokens_below_min_buy(self):
        print("\n--- Test: Contribution Below Min Buy ---")
        presale_id = self._create_presale()
        bob_payment_before = self.payment_token.balance_of(address=self.bob)

        with self.assertRaisesRegex(AssertionError, "AmountTooLow"):
            self.factory.buy_tokens(
                presale_id=presale_id, amount=decimal('50'), signer=self.bob,
                environment={"now": self.sale_time}
            )

        presale = self.factory.presales[presale_id]
        self.assertEqual(presale['funds_raised'], decimal('0'))
        self.assertEqual(presale['tokens_sold'], decimal('0'))
        self.assertEqual(self.payment_token.balance_of(address=self.bob), bob_payment_before)
        self.assertIsNone(self.factory.buyers[presale_id, self.bob])

    def test_buy_tokens_above_max_buy(self):
        print("\n--- Test: Contribution Above Max Buy ---")
        presale_id = self._create_presale()
        with self.assertRaisesRegex(AssertionError, "AmountTooHigh"):
            self.factory.buy_tokens(
                presale_id=presale_id, amount=decimal('10001'), signer=self.bob,
                environment={"now": self.sale_time}
            )

    def test_hard_cap_respected(self):
        print("\n--- Test: Hard Cap Respected ---")
        presale_id = self._create_presale(max_buy=decimal('1000000'))

        self.factory.buy_tokens(
            presale_id=presale_id, amount=decimal('999900'), signer=self.bob,
            environment={"now": self.sale_time}
        )

        with self.assertRaisesRegex(AssertionError, "FundingCapExceeded"):
            self.factory.buy_tokens(
                presale_id=presale_id, amount=decimal('200'), signer=self.charlie,
                environment={"now": self.sale_time}
            )

        presale = self.factory.presales[presale_id]
        self.assertEqual(presale['funds_raised'], decimal('999900'))
        self.assertEqual(presale['tokens_sold'], decimal('99990'))

        # Filling exactly up to the hard cap is accepted
        self.factory.buy_tokens(
            presale_id=presale_id, amount=decimal('100'), signer=self.charlie,
            environment={"now": self.sale_time}
        )
        presale = self.factory.presales[presale_id]
        self.assertEqual(presale['funds_raised'], presale['hard_cap'])
        self.assertLessEqual(presale['tokens_sold'], presale['hard_cap'])

    def test_sale_window_respected(self):
        print("\n--- Test: Sale Window Respected ---")
        presale_id = self._create_presale()

        before_start = self._get_future_time(self.base_time, hours=12)
        with self.assertRaisesRegex(AssertionError, "PresaleNotStarted"):
            self.factory.buy_tokens(
                presale_id=presale_id, amount=decimal('1000'), signer=self.bob,
                environment={"now": before_start}
            )

        after_end = self._get_future_time(self.end_sale, seconds=1)
        with self.assertRaisesRegex(AssertionError, "PresaleEnded"):
            self.factory.buy_tokens(
                presale_id=presale_id, amount=decimal('1000'), signer=self.bob,
                environment={"now": after_end}
            )

        # Both window edges are inclusive
        self.factory.buy_tokens(
            presale_id=presale_id, amount=decimal('1000'), signer=self.bob,
            environment={"now": self.start_sale}
        )
        self.factory.buy_tokens(
            presale_id=presale_id, amount=decimal('1000'), signer=self.bob,
            environment={"now": self.end_sale}
        )
        self.assertEqual(self.factory.presales[presale_id]['funds_raised'], decimal('2000'))

    def test_totals_are_monotonic(self):
        print("\n--- Test: Totals Are Monotonic ---")
        presale_id = self._create_presale()
        previous_funds = decimal('0')
        previous_tokens = decimal('0')

        for buyer, amount in ((self.bob, '1000'), (self.charlie, '2500'), (self.bob, '50'), (self.bob, '10000')):
            try:
                self.factory.buy_tokens(
                    presale_id=presale_id, amount=decimal(amount), signer=buyer,
                    environment={"now": self.sale_time}
                )
            except AssertionError:
                pass # Rejected contributions must leave totals untouched
            presale = self.factory.presales[presale_id]
            self.assertGreaterEqual(presale['funds_raised'], previous_funds)
            self.assertGreaterEqual(presale['tokens_sold'], previous_tokens)
            previous_funds = presale['funds_raised']
            previous_tokens = presale['tokens_sold']

        self.assertEqual(previous_funds, decimal('13500'))
        self.assertEqual(previous_tokens, decimal('1350'))


if __name__ == '__main__':
    unittest.main()
