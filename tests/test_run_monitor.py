"""
Tests for the run_monitor CLI entry point.

Static-reserve configs run end to end; RPC access is mocked for the live
quote modes.
"""

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import yaml

import run_monitor
from amm_arb.adapters.v2 import PairReserveQuoteSource, ReserveQuoteSource
from amm_arb.adapters.router import RouterQuoteSource
from amm_arb.config import ArbConfig
from amm_arb.types import Token

CONFIG_DIR = Path(__file__).resolve().parents[1] / "configs"
STATIC_CONFIG = str(CONFIG_DIR / "static_reserves.yaml")


@pytest.fixture(autouse=True)
def quiet_setup():
    """Keep main() from reconfiguring the root logger or reading .env."""
    with patch("run_monitor.logging_config.setup"), patch(
        "run_monitor.logging_config.setup_debug"
    ), patch("run_monitor.load_dotenv"):
        yield


class TestParseArgs:
    def test_defaults(self):
        args = run_monitor.parse_args([])
        assert args.config == "configs/mainnet_router.yaml"
        assert not args.once
        assert not args.analyze
        assert args.jsonl is None
        assert not args.zero_fee

    def test_flags(self):
        args = run_monitor.parse_args(
            ["--config", "x.yaml", "--once", "--jsonl", "out.jsonl", "--zero-fee", "--verbose"]
        )
        assert args.config == "x.yaml"
        assert args.once and args.zero_fee and args.verbose
        assert args.jsonl == "out.jsonl"

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            run_monitor.parse_args(["--version"])
        assert exc_info.value.code == 0
        assert "0.1.0" in capsys.readouterr().out


class TestBuildQuoteSource:
    def _config(self, mode):
        config = yaml.safe_load(Path(STATIC_CONFIG).read_text())
        config["quote_mode"] = mode
        config["rpc_url"] = "https://rpc.example"
        config["router_address"] = "0x7a250d5630B4cF539739dF2C5dAcb4c659F2488D"
        return ArbConfig(config)

    @pytest.mark.parametrize(
        "mode, expected",
        [
            ("static", ReserveQuoteSource),
            ("reserves", PairReserveQuoteSource),
            ("router", RouterQuoteSource),
        ],
    )
    def test_mode_selects_source(self, mode, expected):
        config = self._config(mode)
        source = run_monitor.build_quote_source(config, MagicMock(), config.build_tokens())
        assert type(source) is expected


class TestMain:
    def test_static_once_writes_jsonl(self, tmp_path):
        out = tmp_path / "opportunities.jsonl"

        assert run_monitor.main(["--config", STATIC_CONFIG, "--once", "--jsonl", str(out)]) == 0

        records = [json.loads(line) for line in out.read_text().splitlines()]
        assert records
        assert all(r["path"] == ["DAI", "WETH", "USDC", "DAI"] for r in records)
        assert all(r["tick"] == 1 for r in records)
        assert all(int(r["profit"]) > 0 for r in records)

    def test_analyze(self, capsys):
        assert run_monitor.main(["--config", STATIC_CONFIG, "--analyze"]) == 0

        output = capsys.readouterr().out
        assert "Price Differences" in output
        assert "Slippage Profile" in output
        assert "DAI -> WETH -> USDC -> DAI" in output

    def test_missing_config(self, tmp_path, capsys):
        assert run_monitor.main(["--config", str(tmp_path / "missing.yaml")]) == 1
        assert "Config error" in capsys.readouterr().err

    def test_zero_fee_rejected_for_router(self, capsys):
        code = run_monitor.main(
            ["--config", str(CONFIG_DIR / "mainnet_router.yaml"), "--zero-fee"]
        )
        assert code == 1
        assert "--zero-fee" in capsys.readouterr().err

    @pytest.mark.parametrize("reserve", ["0", "-1", "NaN"])
    def test_invalid_reserve_exits_with_config_error(self, tmp_path, capsys, reserve):
        config = yaml.safe_load(Path(STATIC_CONFIG).read_text())
        config["pools"][0]["reserve0"] = reserve
        path = tmp_path / "broken.yaml"
        path.write_text(yaml.safe_dump(config))

        assert run_monitor.main(["--config", str(path)]) == 1
        err = capsys.readouterr().err
        assert "Config error" in err
        assert "reserve0" in err

    def test_unreadable_token_exits_with_config_error(self, capsys):
        with patch("run_monitor.connect", return_value=MagicMock()), patch(
            "run_monitor.fetch_token", side_effect=ValueError("execution reverted")
        ):
            code = run_monitor.main(
                ["--config", str(CONFIG_DIR / "mainnet_router.yaml"), "--once"]
            )

        assert code == 1
        err = capsys.readouterr().err
        assert "ConfigError" in err
        assert "Could not read token 'USDC'" in err

    def test_connection_failure(self, capsys):
        with patch("run_monitor.connect", side_effect=ConnectionError("no endpoint")):
            code = run_monitor.main(["--config", str(CONFIG_DIR / "mainnet_router.yaml")])
        assert code == 1
        assert "no endpoint" in capsys.readouterr().err

    def test_router_mode_once(self):
        web3 = MagicMock()
        router = web3.eth.contract.return_value
        router.functions.getAmountsOut.return_value.call.return_value = [1, 2]

        def fake_fetch_token(web3, address, symbol=None):
            return Token(symbol, address, 6)

        with patch("run_monitor.connect", return_value=web3) as mock_connect, patch(
            "run_monitor.fetch_token", side_effect=fake_fetch_token
        ) as mock_fetch:
            code = run_monitor.main(
                ["--config", str(CONFIG_DIR / "mainnet_router.yaml"), "--once"]
            )

        assert code == 0
        mock_connect.assert_called_once_with(
            "https://ethereum.publicnode.com", ["https://eth.drpc.org", "https://1rpc.io/eth"]
        )
        # Only USDC is configured without decimals
        assert mock_fetch.call_count == 1
