import click
from eth_utils import is_hex


class MinInt(click.ParamType):
    name = "minint"

    def __init__(self, min_value):
        self.min_value = min_value

    def convert(self, value, param, ctx):
        try:
            ivalue = int(value)
        except ValueError:
            self.fail(f"{value} is not a valid integer", param, ctx)
        if ivalue < self.min_value:
            self.fail(
                f"{value} is less than the minimum allowed value of {self.min_value}", param, ctx
            )
        return ivalue


class TransactionHash(click.ParamType):
    name = "transaction_hash"

    def convert(self, value, param, ctx):
        value = value.strip()
        if not value.startswith("0x"):
            value = f"0x{value}"
        if len(value) != 66 or not is_hex(value):
            self.fail(f"{value} is not a valid transaction hash", param, ctx)
        return value.lower()


class PrivateKey(click.ParamType):
    name = "private_key"

    def convert(self, value, param, ctx):
        value = value.strip()
        if not value.startswith("0x"):
            value = f"0x{value}"
        if len(value) != 66 or not is_hex(value):
            self.fail("Invalid private key", param, ctx)
        return value
