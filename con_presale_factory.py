I = importlib

factories = Hash() # Keyed by owner address, one factory per deploying owner
presales = Hash() # Keyed by presale id
participants = Hash(default_value=False) # [presale_id, account] -> whitelist membership
buyers = Hash() # [presale_id, account] -> {"amount": X, "tokens": Y, "index": N}
buyer_index = Hash() # [presale_id, N] -> account, in order of first purchase
metadata = Hash()

reentrancyGuardActive = Variable(default_value=False)

BPS_DENOMINATOR = 10000
PAYMENT_NATIVE = "native"
PAYMENT_TOKEN = "token"

# Error kinds, used as assertion message prefixes
INVALID_CAP = "InvalidCap"
INVALID_TIME = "InvalidTime"
INVALID_MIN_MAX = "InvalidMinMax"
INVALID_FEE = "InvalidFee"
INVALID_TOKEN = "InvalidToken"
PRESALE_NOT_STARTED = "PresaleNotStarted"
PRESALE_ENDED = "PresaleEnded"
PRESALE_NOT_ENDED = "PresaleNotEnded"
UNAUTHORIZED = "Unauthorized"
FUNDING_CAP_EXCEEDED = "FundingCapExceeded"
INSUFFICIENT_TOKENS = "InsufficientTokens"
AMOUNT_TOO_LOW = "AmountTooLow"
AMOUNT_TOO_HIGH = "AmountTooHigh"
PAYMENT_SHORTFALL = "PaymentShortfall"
PRESALE_ALREADY_FINALIZED = "PresaleAlreadyFinalized"
FACTORY_NOT_FOUND = "FactoryNotFound"
FACTORY_ALREADY_INITIALIZED = "FactoryAlreadyInitialized"
PRESALE_NOT_FOUND = "PresaleNotFound"

# Standard XSC001 (Fungible Token) interface
token_interface = [
    I.Func('transfer_from', args=('amount', 'to', 'main_account')),
    I.Func('transfer', args=('amount', 'to')),
    I.Func('balance_of', args=('address',)),
]

# Sale tokens must additionally let the factory mint the hard cap into its vault
mintable_interface = [
    I.Func('transfer', args=('amount', 'to')),
    I.Func('balance_of', args=('address',)),
    I.Func('mint', args=('amount', 'to')),
]

# Later-phase configuration, copied verbatim and never acted upon
LAUNCH_CONFIG_DEFAULTS = {
    "dex_router": "",
    "liquidity_percent": 0,
    "is_fund": False,
    "is_auto_listing": False,
    "is_vesting": False,
    "first_release_percent": 0,
    "vesting_period": 0,
    "tokens_release_percent": 0,
    "listing_rate": 0,
    "demy_address": "",
    "liquidity_time": 0,
    "qerralock": "",
    "uniswap_factory": "",
}

# Events
FactoryInitialized = LogEvent(
    event="factory_initialized",
    params={
        "owner": {'type':str, 'idx':True},
        "platform_fee": {'type':int}
    })

PresaleCreated = LogEvent(
    event="presale_created",
    params={
        "presale_id": {'type':str, 'idx':True},
        "factory_id": {'type':str, 'idx':True},
        "owner": {'type':str, 'idx':True},
        "token": {'type':str, 'idx':False},
        "hard_cap": {'type':(int, float, decimal)},
        "platform_fee": {'type':(int, float, decimal)},
        "start_sale": {'type':str, 'idx':False},
        "end_sale": {'type':str, 'idx':False}
    })

TokensPurchased = LogEvent(
    event="tokens_purchased",
    params={
        "presale_id": {'type':str, 'idx':True},
        "buyer": {'type':str, 'idx':True},
        "amount": {'type':(int, float, decimal)},
        "tokens": {'type':(int, float, decimal)},
        "funds_raised": {'type':(int, float, decimal)},
        "tokens_sold": {'type':(int, float, decimal)}
    })

ParticipantUpdated = LogEvent(
    event="participant_updated",
    params={
        "presale_id": {'type':str, 'idx':True},
        "account": {'type':str, 'idx':True},
        "status": {'type':str, 'idx':False}
    })

PresaleFinalized = LogEvent(
    event="presale_finalized",
    params={
        "presale_id": {'type':str, 'idx':True},
        "funds_raised": {'type':(int, float, decimal)},
        "tokens_sold": {'type':(int, float, decimal)}
    })

@construct
def seed():
    metadata['operator'] = ctx.caller
    metadata['native_token'] = 'currency'
    reentrancyGuardActive.set(False)

@export
def change_metadata(key: str, value: Any):
    assert not reentrancyGuardActive.get(), "Presale factory is busy, cannot change metadata now."
    assert ctx.caller == metadata['operator'], 'Only operator can set metadata!'
    metadata[key] = value

def acquire_guard():
    assert not reentrancyGuardActive.get(), "Presale factory is busy, please try again."
    reentrancyGuardActive.set(True)

def release_guard():
    reentrancyGuardActive.set(False)

def require_presale(presale_id: str):
    presale = presales[presale_id]
    assert presale, f'{PRESALE_NOT_FOUND}: presale {presale_id} does not exist.'
    return presale

def require_presale_owner(presale: dict):
    assert ctx.caller == presale["owner"], f'{UNAUTHORIZED}: only the presale owner can do this.'

def require_xsc001(contract_name: str, interface: list, role: str):
    contract = I.import_module(contract_name)
    assert I.enforce_interface(contract, interface), \
        f'{INVALID_TOKEN}: {role} contract {contract_name} is not XSC001-compliant.'
    return contract

def ensure_mint(token: str, owner: str):
    # The sale token must be operated by the presale owner and expose minting
    token_contract = require_xsc001(token, mintable_interface, 'sale token')
    token_metadata = ForeignHash(foreign_contract=token, foreign_name='metadata')
    assert token_metadata['operator'] == owner, \
        f'{UNAUTHORIZED}: sale token {token} is not operated by presale owner {owner}.'
    return token_contract

def payment_contract_for(presale: dict):
    mode = presale["payment_mode"]
    if mode == PAYMENT_NATIVE:
        # Native asset frozen at creation, later metadata changes do not apply
        return I.import_module(presale["payment_token"])
    elif mode == PAYMENT_TOKEN:
        return I.import_module(presale["payment_token"])
    assert False, f'unknown payment mode {mode}.'

def launch_config_from(launch_config: dict):
    config = {}
    if launch_config is None:
        launch_config = {}
    for key, default in LAUNCH_CONFIG_DEFAULTS.items():
        value = launch_config.get(key)
        config[key] = default if value is None else value
    return config

@export
def initialize_factory(platform_fee: int):
    assert not factories[ctx.caller], f'{FACTORY_ALREADY_INITIALIZED}: {ctx.caller} already owns a factory.'
    assert platform_fee >= 0 and platform_fee <= BPS_DENOMINATOR, \
        f'{INVALID_FEE}: platform fee must be between 0 and {BPS_DENOMINATOR} basis points.'

    factories[ctx.caller] = {
        "owner": ctx.caller,
        "presale_count": 0,
        "platform_fee": platform_fee
    }

    FactoryInitialized({"owner": ctx.caller, "platform_fee": platform_fee})
    return ctx.caller

@export
def create_presale(factory_id: str, owner: str, token: str, payment_token: str,
                   presale_rate: float, soft_cap: float, hard_cap: float,
                   min_buy: float, max_buy: float,
                   start_sale: datetime.datetime, end_sale: datetime.datetime,
                   is_native: bool, is_whitelist: bool, launch_config: dict = None):
    acquire_guard()

    factory = factories[factory_id]
    assert factory, f'{FACTORY_NOT_FOUND}: factory {factory_id} does not exist.'
    assert ctx.caller == factory["owner"], f'{UNAUTHORIZED}: only the factory owner can create presales.'

    assert soft_cap <= hard_cap, f'{INVALID_CAP}: soft cap cannot be greater than hard cap.'
    assert start_sale < end_sale, f'{INVALID_TIME}: start time must be before end time.'
    assert min_buy <= max_buy, f'{INVALID_MIN_MAX}: min buy must be less than or equal to max buy.'

    token_contract = ensure_mint(token, owner)
    if is_native:
        payment_mode = PAYMENT_NATIVE
        payment_token = metadata['native_token']
    else:
        payment_mode = PAYMENT_TOKEN
        require_xsc001(payment_token, token_interface, 'payment token')

    presale_count = factory["presale_count"] + 1
    presale_id = hashlib.sha256(factory_id + "/" + str(presale_count))
    assert not presales[presale_id], 'Generated presale ID not unique.'

    platform_fee = (hard_cap * factory["platform_fee"]) // BPS_DENOMINATOR

    presales[presale_id] = {
        "factory_id": factory_id,
        "owner": owner,
        "token": token,
        "payment_token": payment_token,
        "payment_mode": payment_mode,
        "presale_rate": presale_rate,
        "soft_cap": soft_cap,
        "hard_cap": hard_cap,
        "min_buy": min_buy,
        "max_buy": max_buy,
        "start_sale": start_sale,
        "end_sale": end_sale,
        "is_native": is_native,
        "is_whitelist": is_whitelist,
        "launch_config": launch_config_from(launch_config),
        "platform_fee": platform_fee,
        "tokens_minted": hard_cap,
        "tokens_sold": decimal("0.0"),
        "funds_raised": decimal("0.0"),
        "buyer_count": 0,
        "is_finalized": False
    }

    factory["presale_count"] = presale_count
    factories[factory_id] = factory

    # Backs the token supply: the vault never holds more than the hard cap for this presale
    token_contract.mint(amount=hard_cap, to=ctx.this)

    PresaleCreated({
        "presale_id": presale_id,
        "factory_id": factory_id,
        "owner": owner,
        "token": token,
        "hard_cap": hard_cap,
        "platform_fee": platform_fee,
        "start_sale": str(start_sale),
        "end_sale": str(end_sale)
    })

    release_guard()
    return presale_id

@export
def buy_tokens(presale_id: str, amount: float):
    acquire_guard()

    presale = require_presale(presale_id)
    buyer = ctx.caller

    assert now >= presale["start_sale"], f'{PRESALE_NOT_STARTED}: presale has not started yet.'
    assert now <= presale["end_sale"], f'{PRESALE_ENDED}: presale has ended.'
    assert not presale["is_finalized"], f'{PRESALE_ALREADY_FINALIZED}: presale is finalized.'
    if presale["is_whitelist"]:
        assert participants[presale_id, buyer], f'{UNAUTHORIZED}: {buyer} is not whitelisted.'

    assert amount > decimal("0.0"), f'{AMOUNT_TOO_LOW}: contribution amount must be positive.'
    # Compared against the remaining headroom so the total is never formed past the cap
    assert amount <= presale["hard_cap"] - presale["funds_raised"], \
        f'{FUNDING_CAP_EXCEEDED}: contribution exceeds hard cap.'
    assert amount >= presale["min_buy"], f'{AMOUNT_TOO_LOW}: contribution is below the minimum buy.'
    assert amount <= presale["max_buy"], f'{AMOUNT_TOO_HIGH}: contribution is above the maximum buy.'

    presale_rate = presale["presale_rate"]
    assert presale_rate > decimal("0.0"), f'{INSUFFICIENT_TOKENS}: presale rate is zero.'
    # Sub-rate remainders are forfeited
    tokens_to_buy = amount // presale_rate
    assert tokens_to_buy > decimal("0.0"), f'{AMOUNT_TOO_LOW}: contribution buys no tokens at the presale rate.'
    assert tokens_to_buy <= presale["tokens_minted"] - presale["tokens_sold"], \
        f'{INSUFFICIENT_TOKENS}: not enough tokens left in the presale.'

    token_contract = I.import_module(presale["token"])
    vault_token_balance = token_contract.balance_of(address=ctx.this)
    assert vault_token_balance is not None and vault_token_balance >= tokens_to_buy, \
        f'{INSUFFICIENT_TOKENS}: token vault cannot cover this purchase.'

    # --- Payment leg: buyer -> payment vault ---
    payment_contract = payment_contract_for(presale)

    balance_before_transfer = payment_contract.balance_of(address=ctx.this)
    if balance_before_transfer is None:
        balance_before_transfer = decimal("0.0")

    payment_contract.transfer_from(amount=amount, to=ctx.this, main_account=buyer)

    balance_after_transfer = payment_contract.balance_of(address=ctx.this)
    if balance_after_transfer is None:
        balance_after_transfer = decimal("0.0")

    assert balance_after_transfer - balance_before_transfer >= amount, \
        f'{PAYMENT_SHORTFALL}: payment vault received less than {amount}.'

    # --- Token leg: token vault -> buyer ---
    token_contract.transfer(amount=tokens_to_buy, to=buyer)

    # --- EFFECTS ---
    presale["tokens_sold"] += tokens_to_buy
    presale["funds_raised"] += amount

    record = buyers[presale_id, buyer]
    if record:
        record["amount"] += amount
        record["tokens"] += tokens_to_buy
    else:
        record = {"amount": amount, "tokens": tokens_to_buy, "index": presale["buyer_count"]}
        buyer_index[presale_id, str(presale["buyer_count"])] = buyer
        presale["buyer_count"] += 1
    buyers[presale_id, buyer] = record
    presales[presale_id] = presale

    TokensPurchased({
        "presale_id": presale_id,
        "buyer": buyer,
        "amount": amount,
        "tokens": tokens_to_buy,
        "funds_raised": presale["funds_raised"],
        "tokens_sold": presale["tokens_sold"]
    })

    release_guard()
    return {"tokens_purchased": tokens_to_buy}

@export
def add_participant(presale_id: str, account: str):
    acquire_guard()
    presale = require_presale(presale_id)
    require_presale_owner(presale)

    participants[presale_id, account] = True
    ParticipantUpdated({"presale_id": presale_id, "account": account, "status": "added"})
    release_guard()

@export
def remove_participant(presale_id: str, account: str):
    acquire_guard()
    presale = require_presale(presale_id)
    require_presale_owner(presale)

    participants[presale_id, account] = False
    ParticipantUpdated({"presale_id": presale_id, "account": account, "status": "removed"})
    release_guard()

@export
def finalize_presale(presale_id: str):
    acquire_guard()
    presale = require_presale(presale_id)
    require_presale_owner(presale)

    assert not presale["is_finalized"], f'{PRESALE_ALREADY_FINALIZED}: presale is already finalized.'
    assert now > presale["end_sale"] or presale["funds_raised"] >= presale["hard_cap"], \
        f'{PRESALE_NOT_ENDED}: presale is still open.'

    presale["is_finalized"] = True
    presales[presale_id] = presale

    PresaleFinalized({
        "presale_id": presale_id,
        "funds_raised": presale["funds_raised"],
        "tokens_sold": presale["tokens_sold"]
    })
    release_guard()

# --- Helper/View functions ---
@export
def get_factory_info(factory_id: str):
    return factories[factory_id]

@export
def get_presale_info(presale_id: str):
    return presales[presale_id]

@export
def get_buyer_info(presale_id: str, account: str):
    return buyers[presale_id, account]

@export
def get_buyer_at(presale_id: str, index: int):
    return buyer_index[presale_id, str(index)]

@export
def is_participant(presale_id: str, account: str):
    return participants[presale_id, account]
