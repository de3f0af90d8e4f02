class Coordinate:
    row: int # 0 is North's back rank
    col: int

    def __init__(self, row: int, col: int):
        self.row = row
        self.col = col

    def __eq__(self, other):
        return isinstance(other, Coordinate) and self.row == other.row and self.col == other.col

    def to_display(self, board_rows: int) -> str:
        """
        Convert coordinate to the notation shown to players.
        Column is a letter, rank counts down from the top row (row 0 -> board_rows).
        """
        return f"{chr(self.col + ord('A'))}{board_rows - self.row}"

    @staticmethod
    def from_display(notation: str, board_rows: int) -> "Coordinate":
        """Create a coordinate from display notation (e.g., 'D5')."""
        notation = notation.strip().upper()
        if len(notation) < 2 or not notation[0].isalpha() or not notation[1:].isdigit():
            raise ValueError(f"Invalid square notation: {notation!r}")
        col = ord(notation[0]) - ord('A')
        row = board_rows - int(notation[1:])
        return Coordinate(row, col)

    def offset(self, dr: int, dc: int) -> "Coordinate":
        """Return a new coordinate offset by (dr, dc). Bounds are the board's concern."""
        return Coordinate(self.row + dr, self.col + dc)

    def to_dict(self) -> dict:
        return {"row": self.row, "col": self.col}

    @staticmethod
    def from_dict(data: dict) -> "Coordinate":
        return Coordinate(int(data["row"]), int(data["col"]))

    def __hash__(self):
        """Allow Coordinate to be used as dict key"""
        return hash((self.row, self.col))

    def __repr__(self):
        return f"Coordinate({self.row}, {self.col})"
