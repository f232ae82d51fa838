# tagsift
#
# Copyright (C) 2025 Genome Research Ltd.
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in all
# copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.

# pyright: reportImplicitStringConcatenation=false

import json
import logging
import sys
import tomllib
from pathlib import Path
from typing import Any, cast, override

import click
from pydantic import ValidationError

from tagsift import __version__
from tagsift.annotation import SequenceDictionary, read_gtf, sort_gtf_records
from tagsift.compare import compare_tag_values
from tagsift.const import (
    EXIT_FAILURE,
    EXIT_SUCCESS,
    AlignmentFormatError,
    GTFFormatError,
    SequenceDictionaryError,
    TagValuesError,
)
from tagsift.tagfilter import FilterParams, filter_bam_by_tag


logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s ¦ %(levelname)-8s ¦ %(message)s',
    datefmt='%I:%M:%S'
)


existing_file_path = click.Path(
    exists=True,
    file_okay=True,
    dir_okay=False,
    readable=True,
    resolve_path=True,
    path_type=Path
)

writeable_file_path = click.Path(
    dir_okay=False,
    writable=True,
    resolve_path=True,
    path_type=Path
)


class ConfigFile(click.ParamType):
    name: str = "config-file"

    @override
    def convert(
        self,
        value: Any,
        param: Any,
        ctx: Any
    ):
        path = cast(Path, existing_file_path.convert(value, param, ctx))
        data = path.read_bytes()
        ext = path.suffix.lower()
        try:
            if ext == ".toml":
                return tomllib.loads(data.decode("utf-8"))
            elif ext == ".json":
                return json.loads(data)
            else:
                self.fail("Expected .toml or .json", param, ctx)
        except click.BadParameter:
            raise
        except Exception as ex:
            self.fail(f"Failed to parse {path.name}: {ex}", param, ctx)


def set_verbosity(quiet: int) -> None:
    match quiet:
        case 0:
            level = logging.INFO
        case 1:
            level = logging.WARNING
        case _:
            level = logging.ERROR
    logging.getLogger().setLevel(level)


@click.group(
    'tagsift',
    epilog='utilities for filtering alignments by tag and ordering annotation records',
    options_metavar='[-h, --help] [OPTIONS]',
    context_settings={'help_option_names': ['-h', '--help']},
)
@click.version_option(__version__, '-v', '--version', message='%(version)s')
def tagsift_cli():
    pass


@tagsift_cli.command('filter-bam-by-tag', short_help='filter alignments on a tag and its values')
@click.argument('input_path', metavar='INPUT', type=existing_file_path)
@click.argument('output_path', metavar='OUTPUT', type=writeable_file_path)
@click.option(
    '-c',
    '--config',
    'configd',
    metavar='FILEPATH',
    type=ConfigFile(),
    help='TOML or JSON file of filter settings; command line options take precedence'
)
@click.option('-t', '--tag', metavar='TAG', help='two character tag to filter on, e.g. XC')
@click.option(
    '--tag-value',
    'tag_values',
    metavar='STR',
    multiple=True,
    help='accepted tag value; may be given more than once'
)
@click.option(
    '--tag-values-file',
    metavar='FILEPATH',
    type=existing_file_path,
    help='file of accepted tag values, one per line'
)
@click.option(
    '--accept-tag/--reject-tag',
    default=None,
    help='retain reads whose tag matches (default), or discard them'
)
@click.option(
    '--paired-mode/--unpaired-mode',
    default=None,
    help='decide on mates together; input must be grouped by query name'
)
@click.option('--read-number', type=click.IntRange(1, 2), help='keep only read 1 or read 2 of each pair')
@click.option('--min-mapping-quality', type=click.IntRange(min=0), help='discard mapped reads below this MAPQ')
@click.option(
    '--passing-read-threshold',
    type=click.FloatRange(min=0),
    help='fail the run if fewer reads pass - a fraction when below 1, otherwise a read count (1 means one read, not all reads)'
)
@click.option(
    '-s',
    '--summary',
    'summary_path',
    metavar='FILEPATH',
    type=writeable_file_path,
    help='write read counts to a JSON file'
)
@click.option(
    '-r',
    '--cram-reference',
    'cram_reference_path',
    metavar='FILEPATH',
    type=existing_file_path,
    help='path to FASTA format CRAM reference'
)
@click.option(
    '-q',
    '--quiet',
    count=True,
    help='be quiet (-q to not log INFO level messages, -qq to additionally not log WARN)',
    default=0
)
def filter_bam_by_tag_cli(
    input_path: Path,
    output_path: Path,
    configd: dict[str, Any] | None,
    tag: str | None,
    tag_values: tuple[str, ...],
    tag_values_file: Path | None,
    accept_tag: bool | None,
    paired_mode: bool | None,
    read_number: int | None,
    min_mapping_quality: int | None,
    passing_read_threshold: float | None,
    summary_path: Path | None,
    cram_reference_path: Path | None,
    quiet: int,
) -> None:
    '''
    Filter the alignments in INPUT by the presence and value of a tag, writing
    survivors to OUTPUT. The output format follows the OUTPUT suffix.
    '''
    set_verbosity(quiet)

    settings: dict[str, Any] = dict(configd or {})
    cli_settings = {
        'tag': tag,
        'tag_values': tag_values or None,
        'tag_values_file': tag_values_file,
        'accept_tag': accept_tag,
        'paired_mode': paired_mode,
        'read_number': read_number,
        'min_mapping_quality': min_mapping_quality,
        'passing_read_threshold': passing_read_threshold,
    }
    settings.update({k: v for k, v in cli_settings.items() if v is not None})

    try:
        params = FilterParams.model_validate(settings)
    except ValidationError as er:
        for err in er.errors():
            field = '.'.join(str(loc) for loc in err['loc']) or 'settings'
            logging.error(f'invalid filter setting {field!r}: {err["msg"]}')
        sys.exit(EXIT_FAILURE)

    try:
        summary = filter_bam_by_tag(
            input_path,
            output_path,
            params,
            reference=cram_reference_path,
            command_line=' '.join(sys.argv),
        )
    except (TagValuesError, AlignmentFormatError) as er:
        logging.error(str(er))
        sys.exit(EXIT_FAILURE)
    except (OSError, ValueError) as er:
        logging.error(f'failed to filter alignments, reporting {er}')
        sys.exit(EXIT_FAILURE)

    if summary_path:
        try:
            with open(summary_path, 'w') as summary_json:
                json.dump(summary.to_dict(), summary_json, indent='  ')
        except Exception as e:
            logging.error(msg='failed to write summary JSON, reporting: {}'.format(e))
            sys.exit(EXIT_FAILURE)

    if not summary.passes(params.passing_read_threshold):
        logging.error(
            f'{summary.reads_accepted} of {summary.total_reads} reads passed, '
            f'below the passing read threshold of {params.passing_read_threshold}'
        )
        sys.exit(EXIT_FAILURE)

    logging.info('filter-bam-by-tag complete')
    sys.exit(EXIT_SUCCESS)


@tagsift_cli.command('compare-tag-values', short_help='check two alignment files agree on tag values')
@click.argument('input_1', type=existing_file_path)
@click.argument('input_2', type=existing_file_path)
@click.option('-t', '--tag', 'tags', metavar='TAG', multiple=True, required=True, help='tag to compare; may be given more than once')
@click.option(
    '-r',
    '--cram-reference',
    'cram_reference_path',
    metavar='FILEPATH',
    type=existing_file_path,
    help='path to FASTA format CRAM reference'
)
@click.option('-q', '--quiet', count=True, default=0, help='be quiet')
def compare_tag_values_cli(
    input_1: Path,
    input_2: Path,
    tags: tuple[str, ...],
    cram_reference_path: Path | None,
    quiet: int,
) -> None:
    '''
    Compare the query names and TAG values of INPUT_1 and INPUT_2 record by
    record. Exits non-zero if any differ.
    '''
    set_verbosity(quiet)
    try:
        result = compare_tag_values(input_1, input_2, tags, reference=cram_reference_path)
    except AlignmentFormatError as er:
        logging.error(str(er))
        sys.exit(EXIT_FAILURE)
    except (OSError, ValueError) as er:
        logging.error(f'failed to read alignments, reporting {er}')
        sys.exit(EXIT_FAILURE)

    if result:
        logging.info(f'{result.records_compared} records agree on {", ".join(tags)}')
        sys.exit(EXIT_SUCCESS)

    logging.error(
        f'{result.mismatches} differences over {result.records_compared} records '
        f'(query names: {result.name_mismatches}, tags: {result.tag_mismatches}, '
        f'record counts differ: {result.length_mismatch})'
    )
    sys.exit(EXIT_FAILURE)


@tagsift_cli.command('sort-gtf', short_help='sort a GTF into genome order')
@click.argument('gtf', type=existing_file_path)
@click.argument('sequence_dictionary', metavar='SEQUENCE-DICTIONARY', type=existing_file_path)
@click.option(
    '-f',
    '--feature-type',
    'feature_types',
    metavar='STR',
    multiple=True,
    help='only emit features of this type; may be given more than once'
)
@click.option('-q', '--quiet', count=True, default=0, help='be quiet')
def sort_gtf_cli(
    gtf: Path,
    sequence_dictionary: Path,
    feature_types: tuple[str, ...],
    quiet: int,
) -> None:
    '''
    Sort the records of GTF by reference sequence order (taken from
    SEQUENCE-DICTIONARY - a .dict, SAM/BAM header or FASTA), then start, end
    and transcript type. Emits GTF to stdout.
    '''
    set_verbosity(quiet)
    try:
        seq_dict = SequenceDictionary.from_path(sequence_dictionary)
        records = sort_gtf_records(read_gtf(gtf), seq_dict, feature_types or None)
    except (GTFFormatError, SequenceDictionaryError) as er:
        logging.error(str(er))
        sys.exit(EXIT_FAILURE)
    except (OSError, ValueError) as er:
        logging.error(f'failed to sort GTF, reporting {er}')
        sys.exit(EXIT_FAILURE)

    unknown = {r.chromosome for r in records if r.chromosome not in seq_dict}
    if unknown:
        logging.warning(f'chromosomes not in sequence dictionary, sorted first: {sorted(unknown)}')

    for record in records:
        click.echo(record.to_gtf_line())

    logging.info(f'sorted {len(records)} records')
    sys.exit(EXIT_SUCCESS)


if __name__ == "__main__":
    tagsift_cli()
