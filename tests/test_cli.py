import json

import pytest
import requests

from loadreport.cli import build_parser, main


@pytest.fixture
def results_file(tmp_path, encode, mixed_results):
    path = tmp_path / 'results.bin'
    path.write_bytes(encode(mixed_results))
    return path


def test_dump_csv(tmp_path, results_file, mixed_results):
    output = tmp_path / 'results.csv'

    assert main(['dump', '--dumper', 'csv', '--inputs', str(results_file), '--output', str(output)]) == 0
    rows = output.read_text().splitlines()

    assert len(rows) == 3
    assert rows[0].startswith(f'{mixed_results[0].timestamp_ns},200,50000000,')
    assert rows[2].endswith(',"boom"')


def test_dump_json_to_stdout(capsys, results_file):
    assert main(['dump', '--inputs', str(results_file)]) == 0
    captured = capsys.readouterr()

    assert [json.loads(line)['code'] for line in captured.out.splitlines()] == [200, 200, 500]
    assert 'Dumped 3 result(s) as json' in captured.err


def test_dump_merges_inputs(tmp_path, encode, make_result):
    first = tmp_path / 'a.bin'
    second = tmp_path / 'b.bin'
    first.write_bytes(encode([make_result(code=201), make_result(code=202)]))
    second.write_bytes(encode([make_result(code=301), make_result(code=302), make_result(code=303)]))
    output = tmp_path / 'merged.json'

    assert main(['dump', '--inputs', f'{first},{second}', '--output', str(output)]) == 0
    codes = sorted(json.loads(line)['code'] for line in output.read_text().splitlines())

    assert codes == [201, 202, 301, 302, 303]


def test_report_json_single_window(tmp_path, results_file):
    output = tmp_path / 'report.json'

    assert main(['report', '--reporter', 'json', '--window', '1h',
                 '--inputs', str(results_file), '--output', str(output)]) == 0
    lines = output.read_text().splitlines()

    assert len(lines) == 1
    assert json.loads(lines[0])['requests'] == 3


def test_report_without_final_flush_writes_nothing(tmp_path, results_file):
    output = tmp_path / 'report.txt'

    assert main(['report', '--window', '1h', '--no-final-flush',
                 '--inputs', str(results_file), '--output', str(output)]) == 0
    assert output.read_text() == ''


def test_report_histogram(tmp_path, results_file):
    output = tmp_path / 'hist.txt'

    assert main(['report', '--reporter', 'hist[0,100ms,200ms]', '--window', '1h',
                 '--inputs', str(results_file), '--output', str(output)]) == 0
    assert '33.33%' in output.read_text()


def test_report_plot(tmp_path, results_file):
    output = tmp_path / 'plot.html'

    assert main(['report', '--reporter', 'plot', '--inputs', str(results_file), '--output', str(output)]) == 0
    assert '[2.000000,250.000,NaN]' in output.read_text()


@pytest.mark.parametrize('reporter, message', [
    ('xml', 'Error: unsupported reporter'),
    ('hist', 'Error: bad buckets'),
    ('hist[1s,500ms]', 'Error: bad buckets'),
])
def test_report_rejects_bad_reporter(capsys, results_file, reporter, message):
    assert main(['report', '--reporter', reporter, '--inputs', str(results_file)]) == 1
    assert message in capsys.readouterr().err


def test_plot_cannot_remote_write(capsys, results_file):
    assert main(['report', '--reporter', 'plot', '--inputs', str(results_file),
                 '--remote-write-url', 'http://localhost:9090/api/v1/write']) == 1
    assert 'remote write is not available' in capsys.readouterr().err


def test_missing_input_file(capsys, tmp_path):
    assert main(['dump', '--inputs', str(tmp_path / 'missing.bin')]) == 1
    assert capsys.readouterr().err.startswith('Error: ')


def test_truncated_input_is_an_error(capsys, tmp_path, results_file):
    truncated = tmp_path / 'truncated.bin'
    truncated.write_bytes(results_file.read_bytes()[:-1])

    assert main(['dump', '--inputs', str(truncated)]) == 1
    assert 'Error: truncated record' in capsys.readouterr().err


def test_encode_reproduces_binary_stream(tmp_path, results_file):
    dumped = tmp_path / 'results.csv'
    encoded = tmp_path / 'again.bin'

    assert main(['dump', '--dumper', 'csv', '--inputs', str(results_file), '--output', str(dumped)]) == 0
    assert main(['encode', '--from', 'csv', '--inputs', str(dumped), '--output', str(encoded)]) == 0
    assert encoded.read_bytes() == results_file.read_bytes()


def test_window_must_be_a_positive_duration():
    parser = build_parser()

    assert parser.parse_args(['report', '--window', '250ms']).window.total_seconds() == 0.25
    for value in ('0', 'soon'):
        with pytest.raises(SystemExit):
            parser.parse_args(['report', '--window', value])


class FakeResponse:
    def __init__(self, status_code, text=''):
        self.status_code = status_code
        self.text = text


@pytest.mark.parametrize('reporter, sample', [
    ('text', 'loadreport_requests_total{instance="loadreport"} 3'),
    ('json', 'loadreport_status_codes_total{code="500",instance="loadreport"} 1'),
    ('hist[0,100ms,200ms]', 'loadreport_latency_bucket{instance="loadreport",le="0.1"} 1'),
])
def test_report_pushes_every_window(capsys, tmp_path, results_file, reporter, sample):
    output = tmp_path / 'report.out'

    assert main(['report', '--reporter', reporter, '--window', '1h', '--inputs', str(results_file),
                 '--output', str(output), '--remote-write-url', 'http://localhost:9090/api/v1/write',
                 '--dry-run', '--verbose']) == 0
    err = capsys.readouterr().err

    assert sample in err.splitlines()
    assert 'Dry run' in err


def test_report_histogram_push_is_cumulative(capsys, tmp_path, results_file):
    assert main(['report', '--reporter', 'hist[0,100ms,200ms]', '--window', '1h',
                 '--inputs', str(results_file), '--output', str(tmp_path / 'hist.txt'),
                 '--remote-write-url', 'http://localhost:9090/api/v1/write', '--dry-run', '--verbose']) == 0
    lines = capsys.readouterr().err.splitlines()

    assert 'loadreport_latency_bucket{instance="loadreport",le="0.2"} 2' in lines
    assert 'loadreport_latency_bucket{instance="loadreport",le="+Inf"} 3' in lines
    assert not any(line.startswith('loadreport_requests_total') for line in lines)


def test_rejected_push_is_an_error(capsys, monkeypatch, tmp_path, results_file):
    posted = []

    def reject(url, data, headers, timeout):
        posted.append(headers.get('X-Scope-OrgID'))
        return FakeResponse(500, 'internal error')

    monkeypatch.setattr(requests, 'post', reject)

    assert main(['report', '--window', '1h', '--inputs', str(results_file),
                 '--output', str(tmp_path / 'report.txt'),
                 '--remote-write-url', 'http://localhost:9090/api/v1/write',
                 '--remote-write-header', 'X-Scope-OrgID=tenant']) == 1
    assert posted == ['tenant']
    assert 'Error: failed to push snapshot to http://localhost:9090/api/v1/write' in capsys.readouterr().err


def test_dump_skip_exhausted_reads_past_empty_input(tmp_path, results_file):
    empty = tmp_path / 'empty.bin'
    empty.write_bytes(b'')
    merged = tmp_path / 'merged.json'
    stopped = tmp_path / 'stopped.json'

    assert main(['dump', '--skip-exhausted', '--inputs', f'{empty},{results_file}', '--output', str(merged)]) == 0
    assert main(['dump', '--inputs', f'{empty},{results_file}', '--output', str(stopped)]) == 0

    assert len(merged.read_text().splitlines()) == 3
    assert stopped.read_text() == ''


def test_skip_exhausted_help_names_record_alignment(capsys):
    with pytest.raises(SystemExit):
        build_parser().parse_args(['dump', '--help'])

    assert 'only decodes cleanly when every read returns whole records' in ' '.join(capsys.readouterr().out.split())


def test_encode_missing_input_leaves_output_alone(tmp_path):
    output = tmp_path / 'results.bin'
    output.write_bytes(b'keep')

    assert main(['encode', '--inputs', str(tmp_path / 'missing.json'), '--output', str(output)]) == 1
    assert output.read_bytes() == b'keep'
