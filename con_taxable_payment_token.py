# Fee-on-transfer payment token: every credit lands minus the tax rate
balances = Hash(default_value=decimal('0.0'))
metadata = Hash()

@construct
def seed():
    metadata['tax_rate'] = decimal('0.05')
    metadata['total_supply'] = decimal('1000000')
    balances[ctx.caller] = metadata['total_supply']

def move(source: str, to: str, amount: float):
    assert amount > decimal('0.0'), 'Cannot move zero or negative!'
    assert balances[source] >= amount, f'{source} holds less than {amount}!'
    balances[source] -= amount
    balances[to] += amount - amount * metadata['tax_rate']

@export
def transfer(amount: float, to: str):
    move(ctx.caller, to, amount)

@export
def approve(amount: float, to: str):
    balances[ctx.caller, to] = amount

@export
def transfer_from(amount: float, to: str, main_account: str):
    assert balances[main_account, ctx.caller] >= amount, f'{ctx.caller} may not spend {amount} of {main_account}!'
    balances[main_account, ctx.caller] -= amount
    move(main_account, to, amount)

@export
def balance_of(address: str):
    return balances[address]
