import io
from collections import Counter
from datetime import date, datetime, timedelta

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.enums import TA_CENTER

from armazenamento import buscar, log_info
from bicho import nome_do_grupo, nome_tipo_aposta
from valores import arredondar, format_currency

TIPOS_TRANSACAO = ['deposit', 'withdrawal', 'bet', 'win']


def _dia(registro, campo='criado_em'):
    return (registro.get(campo) or '')[:10]


def _no_periodo(registro, inicio=None, fim=None):
    dia = _dia(registro)
    if inicio and dia < str(inicio):
        return False
    if fim and dia > str(fim):
        return False
    return True


def resumo_transacoes(inicio=None, fim=None):
    """Quantidade e total por tipo de movimentação no período (datas inclusivas)"""
    resumo = {tipo: {'count': 0, 'total': 0.0} for tipo in TIPOS_TRANSACAO}

    for transacao in buscar('transacoes'):
        tipo = transacao.get('tipo')
        if tipo not in resumo or not _no_periodo(transacao, inicio, fim):
            continue
        resumo[tipo]['count'] += 1
        resumo[tipo]['total'] += abs(float(transacao.get('valor') or 0))

    for tipo in resumo:
        resumo[tipo]['total'] = arredondar(resumo[tipo]['total'])

    resumo['saldo_depositos'] = arredondar(resumo['deposit']['total'] - resumo['withdrawal']['total'])
    resumo['resultado_apostas'] = arredondar(resumo['bet']['total'] - resumo['win']['total'])
    return resumo


def metricas_dashboard(hoje=None):
    """Números do painel administrativo"""
    hoje = hoje or date.today()
    usuarios = buscar('usuarios')
    apostas = buscar('apostas')
    saques_pendentes = [s for s in buscar('saques') if s.get('status') in ('pending', 'processing')]
    depositos = buscar('transacoes_pagamento', status='completed')

    populares = Counter()
    for aposta in apostas:
        for grupo in aposta.get('grupos') or []:
            populares[grupo] += 1

    ultimos_7_dias = []
    for i in range(7):
        dia_str = (hoje - timedelta(days=i)).isoformat()
        do_dia = [a for a in apostas if _dia(a) == dia_str]
        ultimos_7_dias.append({
            'data': dia_str,
            'apostas': len(do_dia),
            'volume': arredondar(sum(float(a['valor']) for a in do_dia))
        })

    metricas = {
        'total_usuarios': len([u for u in usuarios if not u.get('is_admin')]),
        'usuarios_ativos': len([u for u in usuarios if u.get('ativo', True) and not u.get('is_admin')]),
        'total_apostas': len(apostas),
        'apostas_pendentes': len([a for a in apostas if a.get('status') == 'pending']),
        'apostas_ganhas': len([a for a in apostas if a.get('status') == 'won']),
        'volume_apostas': arredondar(sum(float(a['valor']) for a in apostas)),
        'total_premios': arredondar(sum(float(a.get('ganho') or 0) for a in apostas if a.get('status') == 'won')),
        'total_depositos': arredondar(sum(float(d['valor']) for d in depositos)),
        'saques_pendentes': {
            'count': len(saques_pendentes),
            'total': arredondar(sum(float(s['valor']) for s in saques_pendentes))
        },
        'animais_populares': [
            {'grupo': grupo, 'nome': nome_do_grupo(grupo), 'apostas': quantidade}
            for grupo, quantidade in populares.most_common(5)
        ],
        'ultimos_7_dias': list(reversed(ultimos_7_dias))
    }
    metricas['resultado'] = arredondar(metricas['volume_apostas'] - metricas['total_premios'])
    return metricas


def relatorio_vendas(filtros=None):
    """Apostas filtradas por animal, sorteio, usuário, modalidade, status e período"""
    filtros = filtros or {}
    modalidades = {m['id']: m for m in buscar('modalidades')}
    sorteios = {s['id']: s for s in buscar('sorteios')}
    usuarios = {u['id']: u for u in buscar('usuarios')}

    selecionadas = []
    for aposta in buscar('apostas', ordem='criado_em', desc=True):
        if filtros.get('grupo') and int(filtros['grupo']) not in (aposta.get('grupos') or []):
            continue
        if filtros.get('sorteio_id') and aposta.get('sorteio_id') != int(filtros['sorteio_id']):
            continue
        if filtros.get('usuario_id') and aposta.get('usuario_id') != int(filtros['usuario_id']):
            continue
        if filtros.get('modalidade_id') and aposta.get('modalidade_id') != int(filtros['modalidade_id']):
            continue
        if filtros.get('status') and aposta.get('status') != filtros['status']:
            continue
        if not _no_periodo(aposta, filtros.get('data_inicio'), filtros.get('data_fim')):
            continue
        selecionadas.append(aposta)

    por_modalidade = {}
    linhas = []
    for aposta in selecionadas:
        modalidade = modalidades.get(aposta.get('modalidade_id')) or {}
        nome_modalidade = nome_tipo_aposta(aposta.get('tipo'), modalidade.get('nome'))
        sorteio = sorteios.get(aposta.get('sorteio_id')) or {}
        usuario = usuarios.get(aposta.get('usuario_id')) or {}
        ganho = float(aposta.get('ganho') or 0) if aposta.get('status') == 'won' else 0.0

        grupo = por_modalidade.setdefault(nome_modalidade, {
            'modalidade': nome_modalidade, 'quantidade': 0, 'volume': 0.0, 'premios': 0.0
        })
        grupo['quantidade'] += 1
        grupo['volume'] += float(aposta['valor'])
        grupo['premios'] += ganho

        linhas.append({
            'id': aposta['id'],
            'data': aposta.get('criado_em'),
            'usuario': usuario.get('username'),
            'sorteio': sorteio.get('nome'),
            'modalidade': nome_modalidade,
            'premio': aposta.get('tipo_premio'),
            'selecao': ', '.join(str(g) for g in aposta.get('grupos') or []) or ', '.join(aposta.get('numeros') or []),
            'valor': arredondar(aposta['valor']),
            'status': aposta.get('status'),
            'ganho': arredondar(ganho)
        })

    for grupo in por_modalidade.values():
        grupo['volume'] = arredondar(grupo['volume'])
        grupo['premios'] = arredondar(grupo['premios'])

    volume = arredondar(sum(linha['valor'] for linha in linhas))
    premios = arredondar(sum(linha['ganho'] for linha in linhas))

    log_info("relatorio_vendas", f"Relatório gerado - {len(linhas)} apostas, volume R$ {volume:.2f}")
    return {
        'filtros': {chave: valor for chave, valor in filtros.items() if valor not in (None, '')},
        'gerado_em': datetime.now().isoformat(),
        'total_apostas': len(linhas),
        'volume': volume,
        'premios_pagos': premios,
        'resultado': arredondar(volume - premios),
        'por_modalidade': sorted(por_modalidade.values(), key=lambda g: g['volume'], reverse=True),
        'apostas': linhas
    }


def gerar_pdf_relatorio_vendas(relatorio):
    """Renderiza o relatório de vendas em PDF (bytes)"""
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4, title="Relatório de Vendas")
    styles = getSampleStyleSheet()
    titulo = ParagraphStyle('Titulo', parent=styles['Heading1'], alignment=TA_CENTER)

    estilo_tabela = TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#4f46e5')),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.white),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 8),
        ('GRID', (0, 0), (-1, -1), 0.25, colors.grey),
        ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, colors.HexColor('#f3f4f6')]),
    ])

    elementos = [
        Paragraph("Relatório de Vendas", titulo),
        Paragraph(f"Gerado em {datetime.now().strftime('%d/%m/%Y %H:%M')}", styles['Normal']),
        Spacer(1, 12),
    ]

    resumo = [
        ['Apostas', 'Volume', 'Prêmios pagos', 'Resultado'],
        [
            str(relatorio['total_apostas']),
            format_currency(relatorio['volume']),
            format_currency(relatorio['premios_pagos']),
            format_currency(relatorio['resultado'])
        ]
    ]
    tabela_resumo = Table(resumo)
    tabela_resumo.setStyle(estilo_tabela)
    elementos.extend([tabela_resumo, Spacer(1, 12)])

    if relatorio['por_modalidade']:
        linhas = [['Modalidade', 'Apostas', 'Volume', 'Prêmios']]
        for grupo in relatorio['por_modalidade']:
            linhas.append([
                grupo['modalidade'], str(grupo['quantidade']),
                format_currency(grupo['volume']), format_currency(grupo['premios'])
            ])
        tabela = Table(linhas)
        tabela.setStyle(estilo_tabela)
        elementos.extend([Paragraph("Por modalidade", styles['Heading2']), tabela, Spacer(1, 12)])

    if relatorio['apostas']:
        linhas = [['#', 'Data', 'Usuário', 'Sorteio', 'Modalidade', 'Seleção', 'Valor', 'Status']]
        for aposta in relatorio['apostas']:
            linhas.append([
                str(aposta['id']), (aposta['data'] or '')[:16].replace('T', ' '),
                aposta['usuario'] or '-', aposta['sorteio'] or '-', aposta['modalidade'],
                aposta['selecao'], format_currency(aposta['valor']), aposta['status']
            ])
        tabela = Table(linhas, repeatRows=1)
        tabela.setStyle(estilo_tabela)
        elementos.extend([Paragraph("Apostas", styles['Heading2']), tabela])

    doc.build(elementos)
    return buffer.getvalue()
