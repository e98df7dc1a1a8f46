"""Tests for the count table and sample information readers."""

import pandas as pd
import pytest

from rnaseq_workshop.loading import read_count_table, read_sample_info
from rnaseq_workshop.validation import ValidationError


class TestReadCountTable:

    def test_reads_geo_layout(self, data_dir, counts):
        df = read_count_table(data_dir / "GSE60450_LactationGenewiseCounts.txt")

        assert df.shape == counts.shape
        assert 'Length' not in df.columns
        assert list(df.columns) == list(counts.columns)
        assert df.index[0] == '100000'
        assert df.loc['100003', 'MCL1.DG'] == counts.loc['100003', 'MCL1.DG']

    def test_keep_full_names(self, data_dir):
        df = read_count_table(data_dir / "GSE60450_LactationGenewiseCounts.txt", name_length=None)

        assert df.columns[0] == 'MCL1.DG_BC2CTUACXX_ACTTGA_L002_R1'

    def test_ambiguous_truncation(self, data_dir):
        with pytest.raises(ValidationError, match='ambiguous'):
            read_count_table(data_dir / "GSE60450_LactationGenewiseCounts.txt", name_length=4)

    def test_missing_id_column(self, tmp_path):
        path = tmp_path / "counts.txt"
        pd.DataFrame({'GeneID': ['1'], 'A': [3]}).to_csv(path, sep='\t', index=False)

        with pytest.raises(ValidationError, match='EntrezGeneID'):
            read_count_table(path)

    def test_read_csv(self, tmp_path, counts):
        path = tmp_path / "counts.csv"
        counts.rename_axis('EntrezGeneID').reset_index().to_csv(path, index=False)

        df = read_count_table(path, name_length=None)

        assert df.shape == counts.shape

    def test_read_excel(self, tmp_path, counts):
        path = tmp_path / "counts.xlsx"
        counts.rename_axis('EntrezGeneID').reset_index().to_excel(path, index=False)

        df = read_count_table(path, name_length=None)

        assert df.shape == counts.shape
        assert df.index[0] == '100000'


class TestReadSampleInfo:

    def test_indexed_by_sample_name(self, data_dir):
        info = read_sample_info(data_dir / "SampleInfo_Corrected.txt")

        assert list(info.index[:2]) == ['MCL1.DG', 'MCL1.DH']
        assert 'SampleName' in info.columns
        assert info.loc['MCL1.DG', 'FileName'] == 'MCL1.DG_BC2CTUACXX_ACTTGA_L002_R1'
        assert info.loc['MCL1.LF', 'Status'] == 'lactate'

    def test_strips_whitespace(self, tmp_path):
        path = tmp_path / "info.txt"
        path.write_text("SampleName\tCellType\tStatus\nMCL1.DG \tbasal \tvirgin\n")

        info = read_sample_info(path)

        assert info.index[0] == 'MCL1.DG'
        assert info.loc['MCL1.DG', 'CellType'] == 'basal'

    def test_missing_sample_column(self, data_dir):
        with pytest.raises(ValidationError, match='Sample'):
            read_sample_info(data_dir / "SampleInfo_Corrected.txt", sample_column='Sample')

    def test_index_matches_truncated_count_columns(self, data_dir):
        counts = read_count_table(data_dir / "GSE60450_LactationGenewiseCounts.txt")
        info = read_sample_info(data_dir / "SampleInfo_Corrected.txt")

        assert list(info.index) == list(counts.columns)

    def test_legacy_excel_rejected(self, tmp_path):
        path = tmp_path / "info.xls"
        path.write_bytes(b"\xd0\xcf\x11\xe0")

        with pytest.raises(ValidationError, match='xlsx'):
            read_sample_info(path)
