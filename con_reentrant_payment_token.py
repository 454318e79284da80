# con_reentrant_payment_token.py
# Payment token that calls back into the presale factory from transfer_from
I = importlib

balances = Hash(default_value=decimal('0.0'))
metadata = Hash()

re_entry_owner = Variable()
re_entry_target_factory = Variable()
re_entry_presale_id = Variable()
re_entry_amount = Variable()
re_entry_attempt_count = Variable()
re_entry_max_attempts = Variable() # To prevent infinite loops in complex scenarios

@construct
def seed():
    metadata['token_name'] = "REENTRANT PAYMENT TOKEN"
    metadata['token_symbol'] = "RPT"
    metadata['total_supply'] = decimal('0.0')
    re_entry_attempt_count.set(0)
    re_entry_max_attempts.set(1) # Only re-enter once
    re_entry_owner.set(ctx.caller)

@export
def configure_re_entrancy(factory_name: str, presale_id: str, amount: float):
    assert ctx.caller == re_entry_owner.get(), "Only owner can configure re-entrancy."
    re_entry_target_factory.set(factory_name)
    re_entry_presale_id.set(presale_id)
    re_entry_amount.set(amount)
    re_entry_attempt_count.set(0)

@export
def mint(amount: float, to: str):
    assert ctx.caller == re_entry_owner.get(), "Only owner can mint."
    assert amount > 0, "Mint amount must be positive"
    balances[to] += amount
    metadata['total_supply'] += amount

@export
def transfer(amount: float, to: str):
    assert amount > 0, "Transfer amount must be positive"
    sender = ctx.caller

    sender_bal = balances[sender]
    assert sender_bal >= amount, f"Insufficient balance for sender {sender}"

    balances[sender] = sender_bal - amount
    balances[to] += amount
    return True

@export
def approve(amount: float, to: str):
    assert amount >= 0, "Approve amount must be non-negative"
    balances[ctx.caller, to] = amount
    return True

@export
def transfer_from(amount: float, to: str, main_account: str):
    assert amount > 0, "Transfer amount must be positive"
    spender = ctx.caller # The presale factory in the attack scenario

    owner_balance = balances[main_account]
    assert owner_balance >= amount, f"Insufficient balance for owner {main_account}"

    spender_allowance = balances[main_account, spender]
    assert spender_allowance >= amount, f"Insufficient allowance for spender {spender} from owner {main_account}"

    balances[main_account] = owner_balance - amount
    balances[main_account, spender] = spender_allowance - amount
    balances[to] += amount

    current_attempts = re_entry_attempt_count.get()
    target_factory = re_entry_target_factory.get()
    target_presale_id = re_entry_presale_id.get()

    if target_factory and target_presale_id and current_attempts < re_entry_max_attempts.get():
        re_entry_attempt_count.set(current_attempts + 1)
        factory_contract = I.import_module(target_factory)
        # ctx.caller inside the re-entrant buy_tokens is this token contract
        factory_contract.buy_tokens(presale_id=target_presale_id, amount=re_entry_amount.get())

    return True

@export
def balance_of(address: str):
    return balances[address]
