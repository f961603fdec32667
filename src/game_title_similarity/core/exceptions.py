"""Title similarity exceptions.

カスタム例外クラスを定義します。
"""


class PairNotFoundError(Exception):
    """指定された類似ペアが存在しない.

    Attributes:
        pair_id: 見つからなかったペアID
    """

    def __init__(self, pair_id: str) -> None:
        self.pair_id = pair_id
        super().__init__(f"Similar title pair not found: {pair_id}")


class AnalysisInProgressError(Exception):
    """同一オーナーの類似度解析が実行中.

    同一オーナーに対してリコンサイルを並行実行すると、古いペア集合を元に
    二重作成や削除の競合が起きるため、実行中の解析がある場合は開始しない。

    Attributes:
        owner_id: 対象オーナー
        run_id: 実行中の解析ID
    """

    def __init__(self, owner_id: int, run_id: int) -> None:
        self.owner_id = owner_id
        self.run_id = run_id
        message = (
            f"Similarity analysis already running for owner {owner_id} (run_id={run_id}). "
            "Wait for it to finish, or mark it failed if the previous process died."
        )
        super().__init__(message)


class TitleSourceError(ValueError):
    """タイトル入力ファイルの形式が不正（id/name 列が無いなど）.

    Attributes:
        file_path: 入力ファイルのパス
        columns: 実際の列名
    """

    def __init__(self, file_path: str, columns: list[str]) -> None:
        self.file_path = file_path
        self.columns = columns
        message = (
            f"Title source {file_path} must provide an id column ('title_id' or 'id') "
            f"and a name column ('name' or 'title'). Found columns: {columns}"
        )
        super().__init__(message)
