"""drudock: Docker + Drupal ローカル開発環境の CLI。"""

__version__ = "1.4.0"
