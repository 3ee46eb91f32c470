"""
scripts

Package utilitaire pour les scripts de dev / maintenance (CLI).

Note :
- Les scripts ne contiennent pas de logique métier : ils appellent les modules de `app/`.
"""
