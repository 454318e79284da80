balances = Hash(default_value=decimal('0.0'))
minters = Hash(default_value=False)
metadata = Hash()

@construct
def seed():
    metadata['token_name'] = "PRESALE MINTABLE TOKEN"
    metadata['token_symbol'] = "PMT"
    metadata['token_decimals'] = 9
    metadata['total_supply'] = decimal('0.0')
    metadata['operator'] = ctx.caller

@export
def change_metadata(key: str, value: Any):
    assert ctx.caller == metadata['operator'], 'Only operator can set metadata!'
    metadata[key] = value

@export
def set_minter(account: str, enabled: bool):
    assert ctx.caller == metadata['operator'], 'Only operator can set minters!'
    minters[account] = enabled

@export
def mint(amount: float, to: str):
    assert ctx.caller == metadata['operator'] or minters[ctx.caller], \
        f'{ctx.caller} is not allowed to mint!'
    assert amount > decimal('0.0'), 'Cannot mint zero or negative!'

    balances[to] += amount
    metadata['total_supply'] += amount

@export
def transfer(amount: float, to: str):
    assert amount > decimal('0.0'), 'Cannot transfer zero or negative!'
    sender = ctx.caller

    sender_bal = balances[sender]
    assert sender_bal >= amount, f'Transfer amount exceeds balance for sender {sender}!'

    balances[sender] = sender_bal - amount
    balances[to] += amount

@export
def approve(amount: float, to: str):
    assert amount >= decimal('0.0'), 'Cannot approve negative!' # Allow 0 for clearing approval
    sender = ctx.caller
    balances[sender, to] = amount

@export
def transfer_from(amount: float, to: str, main_account: str):
    assert amount > decimal('0.0'), 'Cannot transfer zero or negative!'
    spender = ctx.caller

    allowance = balances[main_account, spender]
    assert allowance >= amount, \
        f'Transfer amount {amount} exceeds allowance {allowance} for {main_account} by spender {spender}!'

    main_account_bal = balances[main_account]
    assert main_account_bal >= amount, f'Transfer amount {amount} exceeds balance {main_account_bal} for main_account {main_account}!'

    balances[main_account, spender] = allowance - amount
    balances[main_account] = main_account_bal - amount
    balances[to] += amount

@export
def balance_of(address: str):
    return balances[address]

@export
def allowance(owner: str, spender: str):
    return balances[owner, spender]
